"""Pydantic schemas for system and tenant configuration."""
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema

ValueType = Literal["STRING", "INTEGER", "BOOLEAN", "DECIMAL", "JSON"]


class SystemConfigurationCreate(BaseCreateSchema):
    config_key: str = Field(..., min_length=1, max_length=150)
    config_value: Optional[str] = None
    value_type: ValueType = "STRING"
    category: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    is_editable: bool = True


class SystemConfigurationUpdate(BaseUpdateSchema):
    config_value: Optional[str] = None
    value_type: Optional[ValueType] = None
    category: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=500)


class SystemConfigurationResponse(BaseResponseSchema):
    id: UUID
    config_key: str
    config_value: Optional[str] = None
    value_type: str
    category: Optional[str] = None
    description: Optional[str] = None
    is_editable: bool
    updated_at: datetime


class TenantConfigurationSet(BaseModel):
    config_value: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)


class TenantConfigurationResponse(BaseResponseSchema):
    id: UUID
    config_key: str
    config_value: Optional[str] = None
    description: Optional[str] = None
    updated_at: datetime


class ConfigValueResponse(BaseModel):
    config_key: str
    config_value: Optional[str] = None
