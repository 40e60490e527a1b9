"""Pydantic schemas for security groups and user assignments."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from retailbill.core.permissions import Permission
from retailbill.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class SecurityGroupCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    permissions: List[Permission] = Field(default_factory=list)
    is_active: bool = True


class SecurityGroupUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    permissions: Optional[List[Permission]] = None
    is_active: Optional[bool] = None


class SecurityGroupResponse(BaseResponseSchema):
    id: UUID
    name: str
    description: Optional[str] = None
    permissions: List[Permission] = Field(validation_alias="permission_codes")
    is_active: bool
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UserGroupAssignmentRequest(BaseModel):
    """Replace the user's security groups with this set."""
    security_group_ids: List[UUID] = Field(default_factory=list)


class UserSecurityGroupResponse(BaseResponseSchema):
    id: UUID
    user_id: str
    security_group_id: UUID
    assigned_by: Optional[str] = None
    assigned_at: datetime


class UserPermissionsResponse(BaseModel):
    user_id: str
    permissions: List[Permission]
