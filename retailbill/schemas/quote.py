"""Pydantic schemas for quotes."""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from retailbill.models.quote import QuoteStatus
from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema


class QuoteItemCreate(BaseCreateSchema):
    product_id: Optional[UUID] = None
    product_name: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = Field(None, max_length=500)
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0, decimal_places=2)
    discount_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100)


class QuoteCreate(BaseCreateSchema):
    customer_id: UUID
    quote_date: Optional[date] = None
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    payment_term_days: Optional[int] = Field(None, ge=0)
    items: List[QuoteItemCreate] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_validity_window(self):
        if self.quote_date and self.valid_until and self.valid_until < self.quote_date:
            raise ValueError("valid_until must not be before quote_date")
        return self


class QuoteRejectRequest(BaseModel):
    reason: Optional[str] = None


class QuoteConvertRequest(BaseModel):
    """Where the invoice produced from the quote is billed."""
    store_id: str = Field("MAIN", min_length=1, max_length=50)
    counter_id: str = Field("QUOTE", min_length=1, max_length=50)


class QuoteItemResponse(BaseResponseSchema):
    id: UUID
    product_id: Optional[UUID] = None
    product_name: str
    description: Optional[str] = None
    quantity: int
    unit_price: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal


class QuoteResponse(BaseResponseSchema):
    id: UUID
    quote_number: str
    customer_id: UUID
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    status: QuoteStatus
    quote_date: date
    valid_until: date
    subtotal: Decimal
    discount: Decimal
    tax_amount: Decimal
    total: Decimal
    notes: Optional[str] = None
    terms: Optional[str] = None
    payment_term_days: Optional[int] = None
    converted_invoice_id: Optional[UUID] = None
    converted_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_by: str
    created_at: datetime
    items: List[QuoteItemResponse] = []
