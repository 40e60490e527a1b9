"""Pydantic schemas for credit notes."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from retailbill.models.credit_note import ApplicationMethod, CreditNoteReason, CreditNoteStatus
from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class CreditNoteItemCreate(BaseCreateSchema):
    invoice_item_id: Optional[UUID] = None
    product_id: Optional[UUID] = None
    product_name: Optional[str] = Field(None, max_length=300)
    description: Optional[str] = Field(None, max_length=500)
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0, decimal_places=2)
    discount_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    tax_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    restock: bool = False


class CreditNoteCreate(BaseCreateSchema):
    invoice_id: UUID
    reason: CreditNoteReason
    reason_description: Optional[str] = None
    application_method: ApplicationMethod = ApplicationMethod.REDUCE_INVOICE
    restock_items: bool = False
    notes: Optional[str] = None
    items: List[CreditNoteItemCreate] = Field(..., min_length=1)


class CreditNoteUpdate(BaseUpdateSchema):
    reason: Optional[CreditNoteReason] = None
    reason_description: Optional[str] = None
    application_method: Optional[ApplicationMethod] = None
    restock_items: Optional[bool] = None
    notes: Optional[str] = None
    items: Optional[List[CreditNoteItemCreate]] = Field(None, min_length=1)


class CreditNoteApproveRequest(BaseModel):
    approval_notes: Optional[str] = None


class CreditNoteApplyRequest(BaseModel):
    refund_reference: Optional[str] = Field(None, max_length=100)


class CreditNoteCancelRequest(BaseModel):
    reason: Optional[str] = None


class CreditNoteItemResponse(BaseResponseSchema):
    id: UUID
    invoice_item_id: Optional[UUID] = None
    product_id: Optional[UUID] = None
    product_name: str
    description: Optional[str] = None
    quantity: int
    unit_price: Decimal
    discount_amount: Decimal
    tax_percentage: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    restock: bool


class CreditNoteResponse(BaseResponseSchema):
    id: UUID
    credit_note_number: str
    invoice_id: UUID
    invoice_number: Optional[str] = None
    customer_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    status: CreditNoteStatus
    reason: CreditNoteReason
    reason_description: Optional[str] = None
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    restock_items: bool
    application_method: ApplicationMethod
    refund_reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: str
    approved_by: Optional[str] = None
    approval_notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: datetime
    approved_at: Optional[datetime] = None
    issued_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[CreditNoteItemResponse] = []
