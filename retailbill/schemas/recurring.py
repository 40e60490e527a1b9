"""Pydantic schemas for recurring invoice schedules."""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from retailbill.models.recurring import RecurringFrequency
from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class RecurringInvoiceCreate(BaseCreateSchema):
    customer_id: UUID
    frequency: RecurringFrequency
    start_date: date
    end_date: Optional[date] = None
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    description: Optional[str] = Field(None, max_length=500)
    store_id: str = Field("MAIN", min_length=1, max_length=50)
    counter_id: str = Field("AUTO", min_length=1, max_length=50)
    payment_terms: str = Field("Net 30", max_length=50)
    late_fee_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    late_fee_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    grace_period_days: int = Field(0, ge=0)
    auto_email: bool = False
    max_invoices: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class RecurringInvoiceUpdate(BaseUpdateSchema):
    frequency: Optional[RecurringFrequency] = None
    end_date: Optional[date] = None
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    description: Optional[str] = Field(None, max_length=500)
    payment_terms: Optional[str] = Field(None, max_length=50)
    late_fee_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    late_fee_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    grace_period_days: Optional[int] = Field(None, ge=0)
    auto_email: Optional[bool] = None
    max_invoices: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = None


class RecurringToggleRequest(BaseModel):
    is_active: bool


class RecurringInvoiceResponse(BaseResponseSchema):
    id: UUID
    customer_id: UUID
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    description: Optional[str] = None
    store_id: str
    counter_id: str
    frequency: RecurringFrequency
    start_date: date
    end_date: Optional[date] = None
    next_invoice_date: date
    last_invoice_date: Optional[date] = None
    is_active: bool
    amount: Decimal
    tax_rate: Decimal
    payment_terms: str
    late_fee_percentage: Optional[Decimal] = None
    late_fee_amount: Optional[Decimal] = None
    grace_period_days: int
    auto_email: bool
    invoices_generated: int
    max_invoices: Optional[int] = None
    notes: Optional[str] = None
    created_by: str
    created_at: datetime
