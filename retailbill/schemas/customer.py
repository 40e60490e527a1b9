"""Pydantic schemas for customers and suppliers."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


# ==================== Customer ====================

class CustomerBase(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=5, max_length=20)
    email: Optional[EmailStr] = None
    gstin: Optional[str] = Field(None, max_length=15)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    pincode: Optional[str] = Field(None, max_length=10)
    notes: Optional[str] = None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, min_length=5, max_length=20)
    email: Optional[EmailStr] = None
    gstin: Optional[str] = Field(None, max_length=15)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    pincode: Optional[str] = Field(None, max_length=10)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class CustomerResponse(BaseResponseSchema):
    id: UUID
    name: str
    phone: str
    email: Optional[str] = None
    gstin: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    wallet_balance: Decimal
    loyalty_points: int
    total_spent: Decimal
    visit_count: int
    last_visit_at: Optional[datetime] = None
    is_active: bool
    notes: Optional[str] = None
    created_at: datetime


class WalletAmountRequest(BaseCreateSchema):
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class LoyaltyRedeemRequest(BaseCreateSchema):
    points: int = Field(..., gt=0, description="100 points redeem into 1.00 of wallet credit")


# ==================== Supplier ====================

class SupplierCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    contact_person: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    gstin: Optional[str] = Field(None, max_length=15)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    pincode: Optional[str] = Field(None, max_length=10)
    payment_terms_days: int = Field(30, ge=0)
    notes: Optional[str] = None


class SupplierUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    contact_person: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    gstin: Optional[str] = Field(None, max_length=15)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=50)
    pincode: Optional[str] = Field(None, max_length=10)
    payment_terms_days: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class SupplierResponse(BaseResponseSchema):
    id: UUID
    name: str
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    gstin: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    payment_terms_days: int
    is_active: bool
    notes: Optional[str] = None
    created_at: datetime
