"""Sales quotations convertible to invoices."""
import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Date, Integer, Numeric, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retailbill.database import Base
from retailbill.db_types import UUIDType, TZDateTime, utcnow


ZERO = Decimal("0")


class QuoteStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CONVERTED = "CONVERTED"


class Quote(Base):
    __tablename__ = "quotes"
    __table_args__ = (
        Index("ix_quotes_tenant_number", "tenant_id", "quote_number", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quote_number: Mapped[str] = mapped_column(String(50), nullable=False)

    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=QuoteStatus.DRAFT.value, nullable=False, index=True
    )
    quote_date: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_term_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    converted_invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    converted_at: Mapped[Optional[datetime]] = mapped_column(TZDateTime, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(TZDateTime, nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(TZDateTime, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(TZDateTime, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    items: Mapped[List["QuoteItem"]] = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
    )

    def calculate_totals(self) -> None:
        self.subtotal = sum((i.unit_price * i.quantity for i in self.items), ZERO)
        self.discount = sum((i.discount_amount or ZERO for i in self.items), ZERO)
        self.tax_amount = sum((i.tax_amount or ZERO for i in self.items), ZERO)
        self.total = self.subtotal - self.discount + self.tax_amount

    def __repr__(self) -> str:
        return f"<Quote(number='{self.quote_number}', status='{self.status}')>"


class QuoteItem(Base):
    __tablename__ = "quote_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    quote_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    product_name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=ZERO, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    quote: Mapped["Quote"] = relationship("Quote", back_populates="items")

    def __repr__(self) -> str:
        return f"<QuoteItem(product='{self.product_name}', qty={self.quantity})>"
