from typing import Optional, List
from datetime import datetime
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.models.invoice import Invoice, InvoiceStatus
from retailbill.schemas.base import ListResponse
from retailbill.schemas.invoice import (
    InvoiceCreate,
    InvoiceResponse,
    InvoiceSummaryResponse,
    InvoiceCompleteRequest,
    InvoiceCancelRequest,
    InvoiceReturnRequest,
    HoldInvoiceResponse,
    HeldInvoiceResponse,
    SalesSummaryResponse,
)
from retailbill.services.invoice_service import InvoiceService
from retailbill.services.webhook_service import dispatch_event


router = APIRouter(tags=["Invoices"])


def invoice_event(invoice: Invoice) -> dict:
    return {
        "invoice_id": str(invoice.id),
        "invoice_number": invoice.invoice_number,
        "status": invoice.status,
        "customer_id": str(invoice.customer_id) if invoice.customer_id else None,
        "total_amount": str(invoice.total_amount),
        "balance_amount": str(invoice.balance_amount),
    }


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.INVOICE_CREATE))]
)
async def create_invoice(data: InvoiceCreate, db: DB, user: CurrentUser):
    """Create a DRAFT invoice. Stock shortfalls are logged, not rejected."""
    invoice = await InvoiceService(db).create_invoice(user.tenant_id, user.user_id, data)
    return InvoiceResponse.model_validate(invoice)


@router.get(
    "",
    response_model=ListResponse[InvoiceSummaryResponse],
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def list_invoices(
    db: DB,
    user: CurrentUser,
    status: Optional[InvoiceStatus] = Query(None),
    customer_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    invoices, total = await InvoiceService(db).list_invoices(
        user.tenant_id,
        status=status,
        customer_id=customer_id,
        from_date=from_date,
        to_date=to_date,
        skip=skip,
        limit=limit,
    )
    return ListResponse[InvoiceSummaryResponse](
        items=[InvoiceSummaryResponse.model_validate(i) for i in invoices],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/summary",
    response_model=SalesSummaryResponse,
    dependencies=[Depends(require_permissions(Permission.REPORT_VIEW))]
)
async def get_sales_summary(
    db: DB,
    user: CurrentUser,
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
):
    """Totals over completed invoices in the range."""
    return await InvoiceService(db).get_sales_summary(user.tenant_id, from_date, to_date)


# ==================== Held invoices ====================

@router.post(
    "/hold",
    response_model=HoldInvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.INVOICE_CREATE))]
)
async def hold_invoice(data: InvoiceCreate, db: DB, user: CurrentUser):
    """Park an unsaved invoice and return its hold reference."""
    reference = await InvoiceService(db).hold_invoice(user.tenant_id, user.user_id, data)
    return HoldInvoiceResponse(hold_reference=reference)


@router.get(
    "/held",
    response_model=List[HeldInvoiceResponse],
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def list_held_invoices(db: DB, user: CurrentUser):
    return await InvoiceService(db).list_held_invoices(user.tenant_id)


@router.get(
    "/held/{hold_reference}",
    response_model=InvoiceCreate,
    dependencies=[Depends(require_permissions(Permission.INVOICE_CREATE))]
)
async def resume_held_invoice(hold_reference: str, db: DB, user: CurrentUser):
    """The parked request, ready to be posted to create an invoice."""
    return await InvoiceService(db).resume_held_invoice(user.tenant_id, hold_reference)


@router.delete(
    "/held/{hold_reference}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.INVOICE_DELETE))]
)
async def delete_held_invoice(hold_reference: str, db: DB, user: CurrentUser):
    await InvoiceService(db).delete_held_invoice(user.tenant_id, hold_reference)


# ==================== Single invoice ====================

@router.get(
    "/number/{invoice_number:path}",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def get_invoice_by_number(invoice_number: str, db: DB, user: CurrentUser):
    invoice = await InvoiceService(db).get_invoice_by_number(user.tenant_id, invoice_number)
    return InvoiceResponse.model_validate(invoice)


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def get_invoice(invoice_id: uuid.UUID, db: DB, user: CurrentUser):
    invoice = await InvoiceService(db).get_invoice(invoice_id, user.tenant_id)
    return InvoiceResponse.model_validate(invoice)


@router.post(
    "/{invoice_id}/complete",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_UPDATE, Permission.PAYMENT_CREATE))]
)
async def complete_invoice(
    invoice_id: uuid.UUID,
    data: InvoiceCompleteRequest,
    db: DB,
    user: CurrentUser,
    background_tasks: BackgroundTasks,
):
    """
    Complete a DRAFT invoice with its payments.

    A remaining balance is allowed (credit sale). Stock is deducted after the
    status change; deduction failures are queued for retry.
    """
    invoice = await InvoiceService(db).complete_invoice(invoice_id, user.tenant_id, user.user_id, data.payments)
    background_tasks.add_task(dispatch_event, "invoice.completed", invoice_event(invoice), user.tenant_id)
    return InvoiceResponse.model_validate(invoice)


@router.post(
    "/{invoice_id}/cancel",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_VOID))]
)
async def cancel_invoice(
    invoice_id: uuid.UUID,
    data: InvoiceCancelRequest,
    db: DB,
    user: CurrentUser,
    background_tasks: BackgroundTasks,
):
    invoice = await InvoiceService(db).cancel_invoice(invoice_id, user.tenant_id, user.user_id, data.reason)
    background_tasks.add_task(dispatch_event, "invoice.cancelled", invoice_event(invoice), user.tenant_id)
    return InvoiceResponse.model_validate(invoice)


@router.post(
    "/{invoice_id}/return",
    response_model=InvoiceResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_UPDATE))]
)
async def process_return(
    invoice_id: uuid.UUID,
    data: InvoiceReturnRequest,
    db: DB,
    user: CurrentUser,
    background_tasks: BackgroundTasks,
):
    """Mark a completed invoice RETURNED and restock only the named lines."""
    invoice = await InvoiceService(db).process_return(
        invoice_id, user.tenant_id, user.user_id, data.item_ids, data.reason
    )
    background_tasks.add_task(dispatch_event, "invoice.returned", invoice_event(invoice), user.tenant_id)
    return InvoiceResponse.model_validate(invoice)
