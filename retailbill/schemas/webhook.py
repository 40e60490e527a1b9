"""Pydantic schemas for outbound webhooks."""
from datetime import datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator

from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema

HttpMethod = Literal["POST", "PUT", "PATCH"]

WEBHOOK_EVENTS = (
    "invoice.completed",
    "invoice.cancelled",
    "invoice.returned",
    "credit_note.issued",
)


class WebhookCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    event_type: str = Field(..., min_length=1, max_length=50)
    target_url: str = Field(..., min_length=1, max_length=500, pattern=r"^https?://")
    http_method: HttpMethod = "POST"
    headers: Optional[Dict[str, str]] = None
    secret_key: Optional[str] = Field(None, max_length=255)
    payload_template: Optional[str] = None
    is_active: bool = True
    retry_count: int = Field(3, ge=0, le=10)

    @field_validator("event_type")
    @classmethod
    def check_event_type(cls, v: str) -> str:
        if v not in WEBHOOK_EVENTS:
            raise ValueError(f"Unknown event type: {v}. Expected one of: {', '.join(WEBHOOK_EVENTS)}")
        return v


class WebhookUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    event_type: Optional[str] = Field(None, min_length=1, max_length=50)
    target_url: Optional[str] = Field(None, min_length=1, max_length=500, pattern=r"^https?://")
    http_method: Optional[HttpMethod] = None
    headers: Optional[Dict[str, str]] = None
    secret_key: Optional[str] = Field(None, max_length=255)
    payload_template: Optional[str] = None
    is_active: Optional[bool] = None
    retry_count: Optional[int] = Field(None, ge=0, le=10)

    @field_validator("event_type")
    @classmethod
    def check_event_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in WEBHOOK_EVENTS:
            raise ValueError(f"Unknown event type: {v}")
        return v


class WebhookToggleRequest(BaseModel):
    is_active: bool


class WebhookResponse(BaseResponseSchema):
    id: UUID
    name: str
    event_type: str
    target_url: str
    http_method: str
    headers: Optional[Dict[str, Any]] = None
    secret_key: Optional[str] = None
    payload_template: Optional[str] = None
    is_active: bool
    retry_count: int
    success_count: int
    failure_count: int
    last_triggered_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: datetime

    @field_serializer("secret_key")
    def mask_secret(self, value: Optional[str]) -> Optional[str]:
        return "***" if value else None


class WebhookTestResponse(BaseModel):
    webhook_id: UUID
    delivered: bool
