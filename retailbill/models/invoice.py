"""Invoice aggregate: invoice header, line items, payments and held drafts.

Totals are always recomputed from items and payments by
Invoice.calculate_totals(); nothing else writes the monetary header fields.
"""
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Boolean, Integer, Numeric, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retailbill.database import Base
from retailbill.db_types import UUIDType, JSONType, TZDateTime, utcnow


ZERO = Decimal("0")
CENT = Decimal("0.01")


def _d(value) -> Decimal:
    return ZERO if value is None else Decimal(value)


def _money(value) -> Decimal:
    return _d(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _pct(amount: Decimal, rate) -> Decimal:
    return (amount * _d(rate) / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class PaymentMode(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"
    NET_BANKING = "NET_BANKING"
    WALLET = "WALLET"
    CHEQUE = "CHEQUE"
    CREDIT_NOTE = "CREDIT_NOTE"


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class Invoice(Base):
    """Sales invoice raised at a store counter."""
    __tablename__ = "invoices"
    __table_args__ = (
        Index("ix_invoices_tenant_number", "tenant_id", "invoice_number", unique=True),
        Index("ix_invoices_tenant_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=InvoiceStatus.DRAFT.value,
        nullable=False,
    )

    # Point of sale
    store_id: Mapped[str] = mapped_column(String(50), nullable=False)
    counter_id: Mapped[str] = mapped_column(String(50), nullable=False)

    # Customer (denormalized)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    balance_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    # GST breakup
    total_cgst: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    total_sgst: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    total_igst: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    total_cess: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    place_of_supply: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, comment="State name or code"
    )
    supplier_gstin: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)
    customer_gstin: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)
    reverse_charge: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_interstate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Audit
    created_by: Mapped[str] = mapped_column(String(50), nullable=False)
    completed_by: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(TZDateTime, nullable=True)

    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.line_number",
    )
    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
    )

    def add_item(self, item: "InvoiceItem") -> None:
        item.line_number = len(self.items) + 1
        self.items.append(item)

    def add_payment(self, payment: "Payment") -> None:
        self.payments.append(payment)

    def append_note(self, note: str) -> None:
        self.notes = f"{self.notes}\n{note}" if self.notes else note

    def calculate_totals(self) -> None:
        """Recompute every monetary header field from items and payments."""
        self.subtotal = sum((_money(i.line_total) for i in self.items), ZERO)
        self.tax_amount = sum((_money(i.tax_amount) for i in self.items), ZERO)
        self.discount_amount = sum((_money(i.discount_amount) for i in self.items), ZERO)
        self.total_cgst = sum((_money(i.cgst_amount) for i in self.items), ZERO)
        self.total_sgst = sum((_money(i.sgst_amount) for i in self.items), ZERO)
        self.total_igst = sum((_money(i.igst_amount) for i in self.items), ZERO)
        self.total_cess = sum((_money(i.cess_amount) for i in self.items), ZERO)

        self.total_amount = self.subtotal + self.tax_amount - self.discount_amount
        self.paid_amount = sum((_money(p.amount) for p in self.payments), ZERO)
        self.balance_amount = self.total_amount - self.paid_amount

    def __repr__(self) -> str:
        return f"<Invoice(number='{self.invoice_number}', status='{self.status}')>"


class InvoiceItem(Base):
    """Invoice line item with HSN/SAC and tax breakup."""
    __tablename__ = "invoice_items"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, nullable=True, comment="Empty for service lines without stock"
    )
    product_name: Mapped[str] = mapped_column(String(300), nullable=False)
    product_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    discount_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    discount_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    tax_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    line_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    # GST
    hsn_code: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True, comment="Harmonized System of Nomenclature (goods)"
    )
    sac_code: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True, comment="Services Accounting Code (services)"
    )
    cgst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=ZERO, nullable=False)
    sgst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=ZERO, nullable=False)
    igst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=ZERO, nullable=False)
    cess_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=ZERO, nullable=False)
    cgst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    sgst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    igst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)
    cess_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=ZERO, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    @property
    def gross_amount(self) -> Decimal:
        return _d(self.unit_price) * (self.quantity or 0)

    @property
    def taxable_amount(self) -> Decimal:
        return self.gross_amount - _d(self.discount_amount)

    def calculate_gst(self, is_interstate: bool) -> None:
        """Split GST on the taxable amount and store it as the item's tax."""
        taxable = self.taxable_amount
        if is_interstate:
            self.igst_amount = _pct(taxable, self.igst_rate)
            self.cgst_amount = ZERO
            self.sgst_amount = ZERO
        else:
            self.cgst_amount = _pct(taxable, self.cgst_rate)
            self.sgst_amount = _pct(taxable, self.sgst_rate)
            self.igst_amount = ZERO
        self.cess_amount = _pct(taxable, self.cess_rate)
        self.tax_amount = self.cgst_amount + self.sgst_amount + self.igst_amount + self.cess_amount

    def calculate_line_total(self) -> None:
        # tax_amount is supplied by the caller (or by calculate_gst)
        self.discount_amount = _money(self.discount_amount)
        self.tax_amount = _money(self.tax_amount)
        self.line_total = _money(self.taxable_amount + self.tax_amount)

    def __repr__(self) -> str:
        return f"<InvoiceItem(product='{self.product_name}', qty={self.quantity})>"


class Payment(Base):
    """Payment received against an invoice. Appended, never edited."""
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mode: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    card_last4: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    upi_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment(mode='{self.mode}', amount={self.amount})>"


class HeldInvoice(Base):
    """A parked, not yet created invoice request."""
    __tablename__ = "held_invoices"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    store_id: Mapped[str] = mapped_column(String(50), nullable=False)
    counter_id: Mapped[str] = mapped_column(String(50), nullable=False)
    hold_reference: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    invoice_data: Mapped[dict] = mapped_column(
        JSONType, nullable=False, comment="Serialized invoice create request"
    )
    held_by: Mapped[str] = mapped_column(String(50), nullable=False)
    held_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<HeldInvoice(reference='{self.hold_reference}')>"
