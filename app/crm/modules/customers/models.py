from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.crm.models import Base


class Customer(Base):
    """
    One contact/lead.

    `phone_primary_key` and `whatsapp_key` hold the normalized comparison key of
    the raw phone columns (NULL when the raw value has no digits). The unique
    constraints on them, on `email_id` and on `C_unique_id` back the conflict
    detection and identifier sequencing done in the service layer.
    """

    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customers_last_updated", "last_updated"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    C_unique_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    first_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    middle_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    gender: Mapped[str] = mapped_column(String(16), nullable=False, default="male")

    phone_no_primary: Mapped[str | None] = mapped_column(String(64), nullable=True)
    whatsapp_num: Mapped[str | None] = mapped_column(String(64), nullable=True)
    phone_no_secondary: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email_id: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)

    phone_primary_key: Mapped[str | None] = mapped_column(String(16), nullable=True, unique=True)
    whatsapp_key: Mapped[str | None] = mapped_column(String(16), nullable=True, unique=True)

    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    country: Mapped[str | None] = mapped_column(Text, nullable=True)
    company_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[str | None] = mapped_column(Text, nullable=True)
    disposition: Mapped[str | None] = mapped_column(Text, nullable=True)
    agent_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )
