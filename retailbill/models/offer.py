"""Promotional offers: percentage, fixed amount and minimum-purchase discounts."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, Integer, Numeric, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from retailbill.database import Base
from retailbill.db_types import UUIDType, JSONType, TZDateTime, utcnow


class OfferType(str, Enum):
    PERCENTAGE_DISCOUNT = "PERCENTAGE_DISCOUNT"
    FIXED_AMOUNT_DISCOUNT = "FIXED_AMOUNT_DISCOUNT"
    MINIMUM_PURCHASE = "MINIMUM_PURCHASE"


class OfferStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    EXPIRED = "EXPIRED"


class Offer(Base):
    __tablename__ = "offers"
    __table_args__ = (
        CheckConstraint(
            "usage_limit IS NULL OR usage_count <= usage_limit",
            name="ck_offer_usage_within_limit",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    offer_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=OfferStatus.DRAFT.value, nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, comment="Percent for PERCENTAGE_DISCOUNT, amount otherwise"
    )
    minimum_purchase_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    maximum_discount_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)

    valid_from: Mapped[datetime] = mapped_column(TZDateTime, nullable=False)
    valid_to: Mapped[datetime] = mapped_column(TZDateTime, nullable=False)

    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    applicable_product_ids: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)
    applicable_category_ids: Mapped[Optional[list]] = mapped_column(JSONType, nullable=True)

    is_stackable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_by: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def is_valid_at(self, moment: datetime) -> bool:
        return (
            self.status == OfferStatus.ACTIVE
            and self.valid_from <= moment <= self.valid_to
        )

    def has_usage_remaining(self) -> bool:
        return self.usage_limit is None or (self.usage_count or 0) < self.usage_limit

    def __repr__(self) -> str:
        return f"<Offer(name='{self.name}', type='{self.offer_type}', status='{self.status}')>"
