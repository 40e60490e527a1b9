from typing import Optional, List
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.models.credit_note import CreditNoteStatus
from retailbill.schemas.credit_note import (
    CreditNoteCreate,
    CreditNoteUpdate,
    CreditNoteResponse,
    CreditNoteApproveRequest,
    CreditNoteApplyRequest,
    CreditNoteCancelRequest,
)
from retailbill.services.credit_note_service import CreditNoteService
from retailbill.services.webhook_service import dispatch_event


router = APIRouter(tags=["Credit Notes"])


@router.post(
    "",
    response_model=CreditNoteResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.PAYMENT_REFUND))]
)
async def create_credit_note(data: CreditNoteCreate, db: DB, user: CurrentUser):
    """Raise a DRAFT credit note against a completed invoice."""
    credit_note = await CreditNoteService(db).create_credit_note(user.tenant_id, user.user_id, data)
    return CreditNoteResponse.model_validate(credit_note)


@router.get(
    "",
    response_model=List[CreditNoteResponse],
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def list_credit_notes(
    db: DB,
    user: CurrentUser,
    status: Optional[CreditNoteStatus] = Query(None),
    invoice_id: Optional[uuid.UUID] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    credit_notes = await CreditNoteService(db).list_credit_notes(
        user.tenant_id, status=status, invoice_id=invoice_id, skip=skip, limit=limit
    )
    return [CreditNoteResponse.model_validate(cn) for cn in credit_notes]


@router.get(
    "/{credit_note_id}",
    response_model=CreditNoteResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def get_credit_note(credit_note_id: uuid.UUID, db: DB, user: CurrentUser):
    credit_note = await CreditNoteService(db).get_credit_note(credit_note_id, user.tenant_id)
    return CreditNoteResponse.model_validate(credit_note)


@router.patch(
    "/{credit_note_id}",
    response_model=CreditNoteResponse,
    dependencies=[Depends(require_permissions(Permission.PAYMENT_REFUND))]
)
async def update_credit_note(credit_note_id: uuid.UUID, data: CreditNoteUpdate, db: DB, user: CurrentUser):
    """Edit a DRAFT credit note. Items, when given, replace the existing lines."""
    credit_note = await CreditNoteService(db).update_credit_note(
        credit_note_id, user.tenant_id, user.user_id, data
    )
    return CreditNoteResponse.model_validate(credit_note)


@router.post(
    "/{credit_note_id}/submit",
    response_model=CreditNoteResponse,
    dependencies=[Depends(require_permissions(Permission.PAYMENT_REFUND))]
)
async def submit_credit_note(credit_note_id: uuid.UUID, db: DB, user: CurrentUser):
    credit_note = await CreditNoteService(db).submit_for_approval(credit_note_id, user.tenant_id, user.user_id)
    return CreditNoteResponse.model_validate(credit_note)


@router.post(
    "/{credit_note_id}/approve",
    response_model=CreditNoteResponse,
    dependencies=[Depends(require_permissions(Permission.PAYMENT_REFUND, Permission.INVOICE_VOID))]
)
async def approve_credit_note(
    credit_note_id: uuid.UUID,
    data: CreditNoteApproveRequest,
    db: DB,
    user: CurrentUser,
):
    credit_note = await CreditNoteService(db).approve_credit_note(
        credit_note_id, user.tenant_id, user.user_id, data.approval_notes
    )
    return CreditNoteResponse.model_validate(credit_note)


@router.post(
    "/{credit_note_id}/issue",
    response_model=CreditNoteResponse,
    dependencies=[Depends(require_permissions(Permission.PAYMENT_REFUND))]
)
async def issue_credit_note(
    credit_note_id: uuid.UUID,
    db: DB,
    user: CurrentUser,
    background_tasks: BackgroundTasks,
):
    """Issue an approved note; flagged lines are restocked."""
    credit_note = await CreditNoteService(db).issue_credit_note(credit_note_id, user.tenant_id, user.user_id)
    background_tasks.add_task(
        dispatch_event,
        "credit_note.issued",
        {
            "credit_note_id": str(credit_note.id),
            "credit_note_number": credit_note.credit_note_number,
            "invoice_id": str(credit_note.invoice_id),
            "invoice_number": credit_note.invoice_number,
            "total_amount": str(credit_note.total_amount),
        },
        user.tenant_id,
    )
    return CreditNoteResponse.model_validate(credit_note)


@router.post(
    "/{credit_note_id}/apply",
    response_model=CreditNoteResponse,
    dependencies=[Depends(require_permissions(Permission.PAYMENT_REFUND))]
)
async def apply_credit_note(
    credit_note_id: uuid.UUID,
    data: CreditNoteApplyRequest,
    db: DB,
    user: CurrentUser,
):
    credit_note = await CreditNoteService(db).apply_credit_note(
        credit_note_id, user.tenant_id, user.user_id, data.refund_reference
    )
    return CreditNoteResponse.model_validate(credit_note)


@router.post(
    "/{credit_note_id}/cancel",
    response_model=CreditNoteResponse,
    dependencies=[Depends(require_permissions(Permission.PAYMENT_REFUND))]
)
async def cancel_credit_note(
    credit_note_id: uuid.UUID,
    data: CreditNoteCancelRequest,
    db: DB,
    user: CurrentUser,
):
    credit_note = await CreditNoteService(db).cancel_credit_note(
        credit_note_id, user.tenant_id, user.user_id, data.reason
    )
    return CreditNoteResponse.model_validate(credit_note)
