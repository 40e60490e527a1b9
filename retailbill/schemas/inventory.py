"""Pydantic schemas for products, stock levels and stock movements."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field

from retailbill.models.inventory import AdjustmentType, MovementType
from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class ProductCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=300)
    sku: str = Field(..., min_length=1, max_length=50)
    barcode: Optional[str] = Field(None, max_length=50)
    category_id: Optional[str] = Field(None, max_length=50)
    hsn_code: Optional[str] = Field(None, max_length=20)
    sac_code: Optional[str] = Field(None, max_length=20)
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    reorder_level: int = Field(0, ge=0)


class ProductUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=300)
    barcode: Optional[str] = Field(None, max_length=50)
    category_id: Optional[str] = Field(None, max_length=50)
    hsn_code: Optional[str] = Field(None, max_length=20)
    sac_code: Optional[str] = Field(None, max_length=20)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    reorder_level: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ProductResponse(BaseResponseSchema):
    id: UUID
    name: str
    sku: str
    barcode: Optional[str] = None
    category_id: Optional[str] = None
    hsn_code: Optional[str] = None
    sac_code: Optional[str] = None
    unit_price: Decimal
    tax_rate: Decimal
    reorder_level: int
    is_active: bool
    created_at: datetime


class StockResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    location_id: str
    quantity: int
    reserved_quantity: int
    updated_at: datetime

    @computed_field
    @property
    def available_quantity(self) -> int:
        return self.quantity - self.reserved_quantity


class StockMovementResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    location_id: str
    movement_type: MovementType
    quantity: int
    previous_quantity: int
    new_quantity: int
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    performed_by: Optional[str] = None
    created_at: datetime


class StockReceiveRequest(BaseModel):
    product_id: UUID
    location_id: str = Field(..., min_length=1, max_length=50)
    quantity: int = Field(..., gt=0)
    reference_id: Optional[str] = None
    notes: Optional[str] = None


class StockAdjustmentRequest(BaseModel):
    product_id: UUID
    location_id: str = Field(..., min_length=1, max_length=50)
    adjustment_type: AdjustmentType
    quantity: int = Field(..., ge=0)
    reason: Optional[str] = None


class StockTransferRequest(BaseModel):
    product_id: UUID
    from_location: str = Field(..., min_length=1, max_length=50)
    to_location: str = Field(..., min_length=1, max_length=50)
    quantity: int = Field(..., gt=0)


class AvailabilityResponse(BaseModel):
    product_id: UUID
    location_id: str
    quantity: int
    available: bool
