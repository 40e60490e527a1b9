"""Pydantic schemas for the side-effect outbox."""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel

from retailbill.models.side_effect import SideEffectType, SideEffectStatus
from retailbill.schemas.base import BaseResponseSchema


class PendingSideEffectResponse(BaseResponseSchema):
    id: UUID
    effect_type: SideEffectType
    payload: Dict[str, Any]
    reference: Optional[str] = None
    status: SideEffectStatus
    attempts: int
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SideEffectRetryResponse(BaseModel):
    done: int
    retried: int
    failed: int
