"""Recurring invoice schedules."""
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, Date, Integer, Numeric, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from retailbill.database import Base
from retailbill.db_types import UUIDType, TZDateTime, utcnow


class RecurringFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMIANNUALLY = "SEMIANNUALLY"
    ANNUALLY = "ANNUALLY"


class RecurringInvoice(Base):
    __tablename__ = "recurring_invoices"
    __table_args__ = (
        Index("ix_recurring_due", "tenant_id", "is_active", "next_invoice_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    store_id: Mapped[str] = mapped_column(String(50), default="MAIN", nullable=False)
    counter_id: Mapped[str] = mapped_column(String(50), default="AUTO", nullable=False)

    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, comment="NULL for indefinite")
    next_invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_invoice_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)

    payment_terms: Mapped[str] = mapped_column(String(50), default="Net 30", nullable=False)
    late_fee_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    late_fee_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    grace_period_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    auto_email: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    invoices_generated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_invoices: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_by: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<RecurringInvoice(customer={self.customer_id}, frequency='{self.frequency}')>"
