from typing import Optional, List
from datetime import date
import uuid

from fastapi import APIRouter, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.exceptions import BusinessError
from retailbill.core.permissions import Permission
from retailbill.schemas.invoice import InvoiceSummaryResponse, InvoiceResponse
from retailbill.schemas.recurring import (
    RecurringInvoiceCreate,
    RecurringInvoiceUpdate,
    RecurringInvoiceResponse,
    RecurringToggleRequest,
)
from retailbill.services.recurring_invoice_service import RecurringInvoiceService


router = APIRouter(tags=["Recurring Invoices"])


@router.post(
    "",
    response_model=RecurringInvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.INVOICE_CREATE))]
)
async def create_recurring_invoice(data: RecurringInvoiceCreate, db: DB, user: CurrentUser):
    """The first invoice is due on start_date."""
    schedule = await RecurringInvoiceService(db).create_recurring_invoice(user.tenant_id, user.user_id, data)
    return RecurringInvoiceResponse.model_validate(schedule)


@router.get(
    "",
    response_model=List[RecurringInvoiceResponse],
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def list_recurring_invoices(
    db: DB,
    user: CurrentUser,
    active_only: bool = Query(False),
    customer_id: Optional[uuid.UUID] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    schedules = await RecurringInvoiceService(db).list_recurring_invoices(
        user.tenant_id, active_only=active_only, customer_id=customer_id, skip=skip, limit=limit
    )
    return [RecurringInvoiceResponse.model_validate(s) for s in schedules]


@router.post(
    "/process-due",
    response_model=List[InvoiceSummaryResponse],
    dependencies=[Depends(require_permissions(Permission.INVOICE_CREATE))]
)
async def process_due_invoices(
    db: DB,
    user: CurrentUser,
    as_of: Optional[date] = Query(None, description="Defaults to today"),
):
    """Run the recurring job for this tenant now."""
    invoices = await RecurringInvoiceService(db).process_due_invoices(user.tenant_id, as_of)
    return [InvoiceSummaryResponse.model_validate(i) for i in invoices]


@router.get(
    "/{schedule_id}",
    response_model=RecurringInvoiceResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def get_recurring_invoice(schedule_id: uuid.UUID, db: DB, user: CurrentUser):
    schedule = await RecurringInvoiceService(db).get_recurring_invoice(schedule_id, user.tenant_id)
    return RecurringInvoiceResponse.model_validate(schedule)


@router.patch(
    "/{schedule_id}",
    response_model=RecurringInvoiceResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_UPDATE))]
)
async def update_recurring_invoice(
    schedule_id: uuid.UUID,
    data: RecurringInvoiceUpdate,
    db: DB,
    user: CurrentUser,
):
    schedule = await RecurringInvoiceService(db).update_recurring_invoice(schedule_id, user.tenant_id, data)
    return RecurringInvoiceResponse.model_validate(schedule)


@router.delete(
    "/{schedule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.INVOICE_DELETE))]
)
async def delete_recurring_invoice(schedule_id: uuid.UUID, db: DB, user: CurrentUser):
    await RecurringInvoiceService(db).delete_recurring_invoice(schedule_id, user.tenant_id)


@router.post(
    "/{schedule_id}/toggle",
    response_model=RecurringInvoiceResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_UPDATE))]
)
async def toggle_recurring_invoice(
    schedule_id: uuid.UUID,
    data: RecurringToggleRequest,
    db: DB,
    user: CurrentUser,
):
    schedule = await RecurringInvoiceService(db).toggle_active(schedule_id, user.tenant_id, data.is_active)
    return RecurringInvoiceResponse.model_validate(schedule)


@router.post(
    "/{schedule_id}/generate",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.INVOICE_CREATE))]
)
async def generate_invoice(schedule_id: uuid.UUID, db: DB, user: CurrentUser):
    """Generate the next invoice immediately, regardless of next_invoice_date."""
    service = RecurringInvoiceService(db)
    schedule = await service.get_recurring_invoice(schedule_id, user.tenant_id)
    invoice = await service.generate_invoice_from_recurring(schedule)
    if invoice is None:
        raise BusinessError(
            "Recurring invoice has reached its end date or invoice limit",
            error_code="RECURRING_SCHEDULE_FINISHED",
        )
    return InvoiceResponse.model_validate(invoice)
