"""
Customers module.

Scope:
- Customer records: create (with dedupe on phone/WhatsApp/email), full-replace update,
  lookup, free-text search, recency listing, delete
- C_unique_id assignment (MC_<n>)
- Field-level change history (see app.crm.audit)
"""
