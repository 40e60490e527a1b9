"""
Tenant scoping helpers.

Every tenant-owned table carries a tenant_id column. Services never build a
query on such a table by hand: they start from tenant_select() so the tenant
filter cannot be forgotten, and load single rows with get_for_tenant(), which
treats a row of another tenant exactly like a missing row.

Usage:
    stmt = tenant_select(Invoice, tenant_id, Invoice.status == "DRAFT")
    invoice = await get_for_tenant(db, Invoice, tenant_id, invoice_id, "Invoice")
"""
import uuid
from typing import Any, Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from retailbill.core.exceptions import NotFoundError

ModelT = TypeVar("ModelT")


def tenant_select(model: Type[ModelT], tenant_id: uuid.UUID, *criteria: Any) -> Select:
    """SELECT model rows owned by tenant_id, narrowed by extra criteria."""
    return select(model).where(model.tenant_id == tenant_id, *criteria)


async def get_for_tenant(
    db: AsyncSession,
    model: Type[ModelT],
    tenant_id: uuid.UUID,
    record_id: Any,
    label: Optional[str] = None,
    options: Sequence[Any] = (),
    for_update: bool = False,
) -> ModelT:
    """Load one row by id within a tenant or raise NotFoundError."""
    stmt = tenant_select(model, tenant_id, model.id == record_id)
    if options:
        stmt = stmt.options(*options)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    record = result.scalar_one_or_none()
    if record is None:
        name = label or model.__name__
        raise NotFoundError(
            f"{name} not found: {record_id}",
            error_code="NOT_FOUND",
        )
    return record


async def get_by_field(
    db: AsyncSession,
    model: Type[ModelT],
    tenant_id: uuid.UUID,
    field: InstrumentedAttribute,
    value: Any,
    options: Sequence[Any] = (),
) -> Optional[ModelT]:
    stmt = tenant_select(model, tenant_id, field == value)
    if options:
        stmt = stmt.options(*options)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()