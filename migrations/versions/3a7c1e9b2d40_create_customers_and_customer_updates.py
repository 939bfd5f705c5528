"""create customers and customer_updates

Revision ID: 3a7c1e9b2d40
Revises:
Create Date: 2026-10-16

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "3a7c1e9b2d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in insp.get_indexes(table))
        except Exception:
            return False

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("C_unique_id", sa.String(length=32), nullable=False),
            sa.Column("first_name", sa.Text(), nullable=True),
            sa.Column("middle_name", sa.Text(), nullable=True),
            sa.Column("last_name", sa.Text(), nullable=True),
            sa.Column("gender", sa.String(length=16), nullable=False, server_default="male"),
            sa.Column("phone_no_primary", sa.String(length=64), nullable=True),
            sa.Column("whatsapp_num", sa.String(length=64), nullable=True),
            sa.Column("phone_no_secondary", sa.String(length=64), nullable=True),
            sa.Column("email_id", sa.String(length=320), nullable=True),
            sa.Column("phone_primary_key", sa.String(length=16), nullable=True),
            sa.Column("whatsapp_key", sa.String(length=16), nullable=True),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("country", sa.Text(), nullable=True),
            sa.Column("company_name", sa.Text(), nullable=True),
            sa.Column("contact_type", sa.Text(), nullable=True),
            sa.Column("source", sa.Text(), nullable=True),
            sa.Column("disposition", sa.Text(), nullable=True),
            sa.Column("agent_name", sa.Text(), nullable=True),
            sa.Column("comment", sa.Text(), nullable=True),
            sa.Column("date_of_birth", sa.Date(), nullable=True),
            sa.Column(
                "last_updated",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.UniqueConstraint("C_unique_id", name="uq_customers_c_unique_id"),
            sa.UniqueConstraint("email_id", name="uq_customers_email_id"),
            sa.UniqueConstraint("phone_primary_key", name="uq_customers_phone_primary_key"),
            sa.UniqueConstraint("whatsapp_key", name="uq_customers_whatsapp_key"),
        )
        existing_tables.add("customers")

    if "customers" in existing_tables:
        insp = inspect(op.get_bind())
        if not _has_index("customers", "idx_customers_last_updated"):
            op.create_index("idx_customers_last_updated", "customers", ["last_updated"])

    if "customer_updates" not in existing_tables:
        op.create_table(
            "customer_updates",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=False),
            sa.Column("C_unique_id", sa.String(length=32), nullable=False),
            sa.Column("field", sa.String(length=128), nullable=False),
            sa.Column("old_value", sa.Text(), nullable=True),
            sa.Column("new_value", sa.Text(), nullable=True),
            sa.Column(
                "changed_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        )
        existing_tables.add("customer_updates")

    if "customer_updates" in existing_tables:
        insp = inspect(op.get_bind())
        if not _has_index("customer_updates", "idx_customer_updates_customer_id"):
            op.create_index("idx_customer_updates_customer_id", "customer_updates", ["customer_id", "changed_at"])


def downgrade() -> None:
    op.drop_index("idx_customer_updates_customer_id", table_name="customer_updates")
    op.drop_table("customer_updates")

    op.drop_index("idx_customers_last_updated", table_name="customers")
    op.drop_table("customers")
