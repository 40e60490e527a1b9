"""Outbox of inventory side effects that failed inline and await retry."""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, Integer, Text, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from retailbill.database import Base
from retailbill.db_types import UUIDType, JSONType, TZDateTime, utcnow


class SideEffectType(str, Enum):
    STOCK_DEDUCT = "STOCK_DEDUCT"
    STOCK_REVERSE = "STOCK_REVERSE"
    STOCK_RESTOCK = "STOCK_RESTOCK"


class SideEffectStatus(str, Enum):
    PENDING = "PENDING"
    DONE = "DONE"
    FAILED = "FAILED"


class PendingSideEffect(Base):
    __tablename__ = "pending_side_effects"
    __table_args__ = (
        Index("ix_pending_side_effects_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    effect_type: Mapped[str] = mapped_column(String(30), nullable=False)
    payload: Mapped[dict] = mapped_column(
        JSONType,
        nullable=False,
        comment="product_id, location_id, quantity, reference_id, performed_by",
    )
    reference: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True, index=True, comment="Invoice or credit note number"
    )
    status: Mapped[str] = mapped_column(
        String(20), default=SideEffectStatus.PENDING.value, nullable=False
    )
    attempts: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<PendingSideEffect(type='{self.effect_type}', status='{self.status}')>"
