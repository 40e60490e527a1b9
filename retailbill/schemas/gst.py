"""Pydantic schemas for GST rates and tax calculation."""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class GstRateCreate(BaseCreateSchema):
    hsn_code: Optional[str] = Field(None, max_length=20)
    sac_code: Optional[str] = Field(None, max_length=20)
    tax_category: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    cgst_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    sgst_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    igst_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    cess_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    effective_from: date
    effective_to: Optional[date] = None
    is_active: bool = True


class GstRateUpdate(BaseUpdateSchema):
    description: Optional[str] = Field(None, max_length=500)
    cgst_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    sgst_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    igst_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    cess_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    effective_to: Optional[date] = None
    is_active: Optional[bool] = None


class GstRateResponse(BaseResponseSchema):
    id: UUID
    tenant_id: Optional[UUID] = None
    hsn_code: Optional[str] = None
    sac_code: Optional[str] = None
    tax_category: Optional[str] = None
    description: Optional[str] = None
    cgst_rate: Decimal
    sgst_rate: Decimal
    igst_rate: Decimal
    cess_rate: Decimal
    effective_from: date
    effective_to: Optional[date] = None
    is_active: bool
    created_at: datetime


class GstCalculationRequest(BaseModel):
    code: str = Field(..., description="HSN or SAC code")
    amount: Decimal = Field(..., ge=0)
    supplier_state: str
    customer_state: str


class GstCategoryCalculationRequest(BaseModel):
    tax_category: str
    amount: Decimal = Field(..., ge=0)
    is_interstate: bool = False


class GstCalculationResponse(BaseModel):
    taxable_amount: Decimal
    is_interstate: bool
    cgst_rate: Decimal = Decimal("0")
    sgst_rate: Decimal = Decimal("0")
    igst_rate: Decimal = Decimal("0")
    cess_rate: Decimal = Decimal("0")
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal
    total_tax: Decimal


class GstinValidationResponse(BaseModel):
    gstin: str
    is_valid: bool
    state_code: Optional[str] = None
    state_name: Optional[str] = None
    pan: Optional[str] = None
