from typing import Optional, List
import uuid

from fastapi import APIRouter, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.schemas.webhook import (
    WebhookCreate,
    WebhookUpdate,
    WebhookResponse,
    WebhookToggleRequest,
    WebhookTestResponse,
)
from retailbill.services.webhook_service import WebhookService


router = APIRouter(tags=["Webhooks"])


@router.post(
    "",
    response_model=WebhookResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def create_webhook(data: WebhookCreate, db: DB, user: CurrentUser):
    webhook = await WebhookService(db).create_webhook(user.tenant_id, data)
    return WebhookResponse.model_validate(webhook)


@router.get(
    "",
    response_model=List[WebhookResponse],
    dependencies=[Depends(require_permissions(Permission.SETTINGS_VIEW))]
)
async def list_webhooks(
    db: DB,
    user: CurrentUser,
    event_type: Optional[str] = Query(None),
    active_only: bool = Query(False),
):
    webhooks = await WebhookService(db).list_webhooks(user.tenant_id, event_type=event_type, active_only=active_only)
    return [WebhookResponse.model_validate(w) for w in webhooks]


@router.get(
    "/{webhook_id}",
    response_model=WebhookResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_VIEW))]
)
async def get_webhook(webhook_id: uuid.UUID, db: DB, user: CurrentUser):
    webhook = await WebhookService(db).get_webhook(webhook_id, user.tenant_id)
    return WebhookResponse.model_validate(webhook)


@router.patch(
    "/{webhook_id}",
    response_model=WebhookResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def update_webhook(webhook_id: uuid.UUID, data: WebhookUpdate, db: DB, user: CurrentUser):
    webhook = await WebhookService(db).update_webhook(webhook_id, user.tenant_id, data)
    return WebhookResponse.model_validate(webhook)


@router.delete(
    "/{webhook_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def delete_webhook(webhook_id: uuid.UUID, db: DB, user: CurrentUser):
    await WebhookService(db).delete_webhook(webhook_id, user.tenant_id)


@router.post(
    "/{webhook_id}/toggle",
    response_model=WebhookResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def toggle_webhook(webhook_id: uuid.UUID, data: WebhookToggleRequest, db: DB, user: CurrentUser):
    webhook = await WebhookService(db).toggle_webhook(webhook_id, user.tenant_id, data.is_active)
    return WebhookResponse.model_validate(webhook)


@router.post(
    "/{webhook_id}/test",
    response_model=WebhookTestResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def test_webhook(webhook_id: uuid.UUID, db: DB, user: CurrentUser):
    """Send one test event to the target; no retries, counters untouched."""
    delivered = await WebhookService(db).test_webhook(webhook_id, user.tenant_id)
    return WebhookTestResponse(webhook_id=webhook_id, delivered=delivered)
