"""Credit notes raised against completed invoices."""
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Boolean, Integer, Numeric, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retailbill.database import Base
from retailbill.db_types import UUIDType, TZDateTime, utcnow


ZERO = Decimal("0")
CENT = Decimal("0.01")


class CreditNoteStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    ISSUED = "ISSUED"
    APPLIED = "APPLIED"
    CANCELLED = "CANCELLED"


class CreditNoteReason(str, Enum):
    PRODUCT_RETURN = "PRODUCT_RETURN"
    DEFECTIVE_PRODUCT = "DEFECTIVE_PRODUCT"
    INCORRECT_PRICING = "INCORRECT_PRICING"
    DUPLICATE_INVOICE = "DUPLICATE_INVOICE"
    SERVICE_NOT_PROVIDED = "SERVICE_NOT_PROVIDED"
    CUSTOMER_DISSATISFACTION = "CUSTOMER_DISSATISFACTION"
    BILLING_ERROR = "BILLING_ERROR"
    DAMAGED_GOODS = "DAMAGED_GOODS"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    OTHER = "OTHER"


class ApplicationMethod(str, Enum):
    REDUCE_INVOICE = "REDUCE_INVOICE"
    REFUND = "REFUND"
    STORE_CREDIT = "STORE_CREDIT"


class CreditNote(Base):
    __tablename__ = "credit_notes"
    __table_args__ = (
        Index("ix_credit_notes_tenant_number", "tenant_id", "credit_note_number", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    credit_note_number: Mapped[str] = mapped_column(String(50), nullable=False)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    invoice_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=CreditNoteStatus.DRAFT.value, nullable=False, index=True
    )
    reason: Mapped[str] = mapped_column(String(30), nullable=False)
    reason_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    restock_items: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    application_method: Mapped[str] = mapped_column(
        String(20), default=ApplicationMethod.REDUCE_INVOICE.value, nullable=False
    )
    refund_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[str] = mapped_column(String(50), nullable=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(TZDateTime, nullable=True)
    issued_at: Mapped[Optional[datetime]] = mapped_column(TZDateTime, nullable=True)
    applied_at: Mapped[Optional[datetime]] = mapped_column(TZDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TZDateTime, nullable=True)

    items: Mapped[List["CreditNoteItem"]] = relationship(
        "CreditNoteItem",
        back_populates="credit_note",
        cascade="all, delete-orphan",
    )

    def calculate_totals(self) -> None:
        for item in self.items:
            item.calculate_total()
        self.subtotal = sum((i.subtotal for i in self.items), ZERO)
        self.tax_amount = sum((i.tax_amount for i in self.items), ZERO)
        self.total_amount = sum((i.total for i in self.items), ZERO)

    def __repr__(self) -> str:
        return f"<CreditNote(number='{self.credit_note_number}', status='{self.status}')>"


class CreditNoteItem(Base):
    __tablename__ = "credit_note_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    credit_note_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("credit_notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, nullable=True, comment="Original invoice line"
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    product_name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=ZERO, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    restock: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    credit_note: Mapped["CreditNote"] = relationship("CreditNote", back_populates="items")

    def calculate_total(self) -> None:
        discount = self.discount_amount if self.discount_amount is not None else ZERO
        self.subtotal = (Decimal(self.unit_price) * self.quantity - discount).quantize(CENT, rounding=ROUND_HALF_UP)
        self.tax_amount = (
            self.subtotal * Decimal(self.tax_percentage or ZERO) / Decimal("100")
        ).quantize(CENT, rounding=ROUND_HALF_UP)
        self.total = self.subtotal + self.tax_amount

    def __repr__(self) -> str:
        return f"<CreditNoteItem(product='{self.product_name}', qty={self.quantity})>"
