from typing import Optional, List
import uuid

from fastapi import APIRouter, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.models.quote import QuoteStatus
from retailbill.schemas.invoice import InvoiceResponse
from retailbill.schemas.quote import (
    QuoteCreate,
    QuoteResponse,
    QuoteRejectRequest,
    QuoteConvertRequest,
)
from retailbill.services.quote_service import QuoteService


router = APIRouter(tags=["Quotes"])


@router.post(
    "",
    response_model=QuoteResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.INVOICE_CREATE))]
)
async def create_quote(data: QuoteCreate, db: DB, user: CurrentUser):
    """Create a DRAFT quote. Validity defaults to 30 days from the quote date."""
    quote = await QuoteService(db).create_quote(user.tenant_id, user.user_id, data)
    return QuoteResponse.model_validate(quote)


@router.get(
    "",
    response_model=List[QuoteResponse],
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def list_quotes(
    db: DB,
    user: CurrentUser,
    status: Optional[QuoteStatus] = Query(None),
    customer_id: Optional[uuid.UUID] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    quotes = await QuoteService(db).list_quotes(
        user.tenant_id, status=status, customer_id=customer_id, skip=skip, limit=limit
    )
    return [QuoteResponse.model_validate(q) for q in quotes]


@router.get(
    "/{quote_id}",
    response_model=QuoteResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def get_quote(quote_id: uuid.UUID, db: DB, user: CurrentUser):
    quote = await QuoteService(db).get_quote(quote_id, user.tenant_id)
    return QuoteResponse.model_validate(quote)


@router.post(
    "/{quote_id}/send",
    response_model=QuoteResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_UPDATE))]
)
async def send_quote(quote_id: uuid.UUID, db: DB, user: CurrentUser):
    quote = await QuoteService(db).send_quote(quote_id, user.tenant_id)
    return QuoteResponse.model_validate(quote)


@router.post(
    "/{quote_id}/accept",
    response_model=QuoteResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_UPDATE))]
)
async def accept_quote(quote_id: uuid.UUID, db: DB, user: CurrentUser):
    quote = await QuoteService(db).accept_quote(quote_id, user.tenant_id)
    return QuoteResponse.model_validate(quote)


@router.post(
    "/{quote_id}/reject",
    response_model=QuoteResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_UPDATE))]
)
async def reject_quote(quote_id: uuid.UUID, data: QuoteRejectRequest, db: DB, user: CurrentUser):
    quote = await QuoteService(db).reject_quote(quote_id, user.tenant_id, data.reason)
    return QuoteResponse.model_validate(quote)


@router.post(
    "/{quote_id}/convert",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.INVOICE_CREATE))]
)
async def convert_quote(quote_id: uuid.UUID, data: QuoteConvertRequest, db: DB, user: CurrentUser):
    """Create a DRAFT invoice from the quote lines."""
    invoice = await QuoteService(db).convert_to_invoice(
        quote_id, user.tenant_id, user.user_id, store_id=data.store_id, counter_id=data.counter_id
    )
    return InvoiceResponse.model_validate(invoice)
