"""Pydantic schemas for offers and discount resolution."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field

from retailbill.models.offer import OfferType, OfferStatus
from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class OfferCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    offer_type: OfferType
    discount_value: Decimal = Field(..., ge=0)
    minimum_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    maximum_discount_amount: Optional[Decimal] = Field(None, ge=0)
    valid_from: UtcDatetime
    valid_to: UtcDatetime
    usage_limit: Optional[int] = Field(None, ge=0)
    applicable_product_ids: Optional[List[str]] = None
    applicable_category_ids: Optional[List[str]] = None
    is_stackable: bool = False
    priority: int = 0


class OfferUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    minimum_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    maximum_discount_amount: Optional[Decimal] = Field(None, ge=0)
    valid_from: Optional[UtcDatetime] = None
    valid_to: Optional[UtcDatetime] = None
    usage_limit: Optional[int] = Field(None, ge=0)
    applicable_product_ids: Optional[List[str]] = None
    applicable_category_ids: Optional[List[str]] = None
    is_stackable: Optional[bool] = None
    priority: Optional[int] = None


class OfferResponse(BaseResponseSchema):
    id: UUID
    name: str
    description: Optional[str] = None
    offer_type: OfferType
    status: OfferStatus
    discount_value: Decimal
    minimum_purchase_amount: Optional[Decimal] = None
    maximum_discount_amount: Optional[Decimal] = None
    valid_from: datetime
    valid_to: datetime
    usage_limit: Optional[int] = None
    usage_count: int
    applicable_product_ids: Optional[List[str]] = None
    applicable_category_ids: Optional[List[str]] = None
    is_stackable: bool
    priority: int
    created_by: Optional[str] = None
    created_at: datetime


class DiscountRequest(BaseModel):
    purchase_amount: Decimal = Field(..., ge=0)
    product_ids: List[str] = []
    category_ids: List[str] = []


class DiscountResponse(BaseModel):
    offer_id: UUID
    purchase_amount: Decimal
    discount_amount: Decimal


class OfferEvaluation(BaseModel):
    offer_id: UUID
    name: str
    offer_type: OfferType
    is_stackable: bool
    priority: int
    discount_amount: Decimal


class BestCombinationResponse(BaseModel):
    offers: List[OfferEvaluation]
    total_discount: Decimal
