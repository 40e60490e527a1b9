"""Pydantic schemas for tenant provisioning."""
import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from retailbill.models.tenant import TenantStatus
from retailbill.schemas.base import BaseResponseSchema, BaseUpdateSchema


class TenantProvisionRequest(BaseModel):
    """Request to provision a new tenant with its first administrator."""
    name: str = Field(..., min_length=2, max_length=200)
    slug: str = Field(..., min_length=3, max_length=63)
    admin_user_id: str = Field(..., min_length=1, max_length=50)
    gstin: Optional[str] = Field(None, max_length=15)
    state: Optional[str] = Field(None, max_length=50)
    contact_email: Optional[EmailStr] = None

    @field_validator('slug')
    @classmethod
    def validate_slug(cls, v: str) -> str:
        if not re.match(r'^[a-z0-9]([a-z0-9-]*[a-z0-9])?$', v):
            raise ValueError(
                'Slug must contain only lowercase letters, numbers, and hyphens. '
                'It cannot start or end with a hyphen.'
            )
        return v


class TenantUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    gstin: Optional[str] = Field(None, max_length=15)
    state: Optional[str] = Field(None, max_length=50)
    contact_email: Optional[EmailStr] = None
    status: Optional[TenantStatus] = None


class TenantResponse(BaseResponseSchema):
    id: UUID
    name: str
    slug: str
    status: TenantStatus
    gstin: Optional[str] = None
    state: Optional[str] = None
    contact_email: Optional[str] = None
    created_at: datetime


class TenantProvisionResponse(BaseModel):
    tenant: TenantResponse
    admin_user_id: str
    access_token: str
    token_type: str = "bearer"
