"""Pydantic schemas for invoices, payments and held invoices."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from retailbill.models.invoice import DiscountType, InvoiceStatus, PaymentMode
from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema


# ==================== Requests ====================

class InvoiceItemCreate(BaseCreateSchema):
    """
    One invoice line.

    tax_amount, when given, is used as-is. Without it the line derives its
    tax from the GST rates; with neither the line carries no tax.
    """
    product_id: Optional[UUID] = None
    product_name: str = Field(..., min_length=1, max_length=300)
    product_code: Optional[str] = Field(None, max_length=50)
    barcode: Optional[str] = Field(None, max_length=50)
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0, decimal_places=2)
    discount_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    tax_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    hsn_code: Optional[str] = Field(None, max_length=20)
    sac_code: Optional[str] = Field(None, max_length=20)
    cgst_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    sgst_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    igst_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    cess_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    notes: Optional[str] = None


class InvoiceCreate(BaseCreateSchema):
    store_id: str = Field(..., min_length=1, max_length=50)
    counter_id: str = Field(..., min_length=1, max_length=50)
    customer_id: Optional[UUID] = None
    customer_name: Optional[str] = Field(None, max_length=200)
    customer_phone: Optional[str] = Field(None, max_length=20)
    customer_email: Optional[str] = Field(None, max_length=255)
    customer_gstin: Optional[str] = Field(None, max_length=15)
    place_of_supply: Optional[str] = Field(None, max_length=50)
    reverse_charge: bool = False
    notes: Optional[str] = None
    items: List[InvoiceItemCreate] = Field(..., min_length=1)


class PaymentCreate(BaseCreateSchema):
    mode: PaymentMode
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    reference_number: Optional[str] = Field(None, max_length=100)
    card_last4: Optional[str] = Field(None, min_length=4, max_length=4)
    upi_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class InvoiceCompleteRequest(BaseModel):
    payments: List[PaymentCreate] = []


class InvoiceCancelRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class InvoiceReturnRequest(BaseModel):
    item_ids: List[UUID] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1)


# ==================== Responses ====================

class InvoiceItemResponse(BaseResponseSchema):
    id: UUID
    line_number: int
    product_id: Optional[UUID] = None
    product_name: str
    product_code: Optional[str] = None
    barcode: Optional[str] = None
    quantity: int
    unit_price: Decimal
    discount_amount: Decimal
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None
    tax_amount: Decimal
    tax_rate: Optional[Decimal] = None
    line_total: Decimal
    hsn_code: Optional[str] = None
    sac_code: Optional[str] = None
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal


class PaymentResponse(BaseResponseSchema):
    id: UUID
    mode: PaymentMode
    amount: Decimal
    reference_number: Optional[str] = None
    card_last4: Optional[str] = None
    upi_id: Optional[str] = None
    notes: Optional[str] = None
    paid_at: datetime


class InvoiceResponse(BaseResponseSchema):
    id: UUID
    invoice_number: str
    status: InvoiceStatus
    store_id: str
    counter_id: str
    customer_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
    total_cgst: Decimal
    total_sgst: Decimal
    total_igst: Decimal
    total_cess: Decimal
    place_of_supply: Optional[str] = None
    supplier_gstin: Optional[str] = None
    customer_gstin: Optional[str] = None
    is_interstate: bool
    reverse_charge: bool
    notes: Optional[str] = None
    created_by: str
    completed_by: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    items: List[InvoiceItemResponse] = []
    payments: List[PaymentResponse] = []


class InvoiceSummaryResponse(BaseResponseSchema):
    """List row without items and payments."""
    id: UUID
    invoice_number: str
    status: InvoiceStatus
    store_id: str
    customer_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    total_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
    created_at: datetime
    completed_at: Optional[datetime] = None


class HoldInvoiceResponse(BaseModel):
    hold_reference: str


class HeldInvoiceResponse(BaseModel):
    hold_reference: str
    store_id: str
    counter_id: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    item_count: int
    total_amount: Decimal
    held_by: str
    held_at: datetime
    notes: Optional[str] = None


class SalesSummaryResponse(BaseModel):
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    invoice_count: int
    total_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
