"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that read from ORM models MUST inherit from BaseResponseSchema.
"""
from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class ProductResponse(BaseResponseSchema):
            id: UUID
            name: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """Base class for create/input schemas. Unknown fields are ignored."""
    model_config = ConfigDict(
        extra='ignore',
    )


class BaseUpdateSchema(BaseModel):
    """Base class for update/patch schemas. Use model_dump(exclude_unset=True)."""
    model_config = ConfigDict(
        extra='ignore',
    )


ItemT = TypeVar("ItemT")


class ListResponse(BaseModel, Generic[ItemT]):
    """Paginated list envelope."""
    items: List[ItemT]
    total: int
    skip: int = 0
    limit: int = 50
