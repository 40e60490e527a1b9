"""
Webhook Service

Delivers billing events to tenant-configured HTTP endpoints. Delivery is
best effort: each webhook gets its initial attempt plus `retry_count` retries
with exponential back-off, and a delivery that still fails is logged and
counted on the webhook row, never raised to the caller.
"""
import asyncio
import base64
import hashlib
import hmac
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.config import settings
from retailbill.core.tenant_context import tenant_select, get_for_tenant
from retailbill.database import CustomJSONEncoder, get_db_session
from retailbill.db_types import utcnow
from retailbill.models.webhook import Webhook
from retailbill.schemas.webhook import WebhookCreate, WebhookUpdate

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"


class WebhookDeliveryError(Exception):
    pass


def render_payload(template: Optional[str], data: Dict[str, Any]) -> str:
    """
    JSON body for an event.

    `{{field}}` placeholders in a template are filled from data, JSON-escaped
    so a value can sit inside a quoted string of the template.
    """
    if not template:
        return json.dumps(data, cls=CustomJSONEncoder)

    payload = template
    for key, value in data.items():
        text = "" if value is None else json.dumps(str(value))[1:-1]
        payload = payload.replace("{{" + key + "}}", text)
    return payload


def sign_payload(payload: str, secret_key: str) -> str:
    """Base64 HMAC-SHA256 of the body."""
    digest = hmac.new(secret_key.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


class WebhookService:
    def __init__(self, db: AsyncSession, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.db = db
        self.transport = transport

    # ==================== CRUD ====================

    async def create_webhook(self, tenant_id: uuid.UUID, data: WebhookCreate) -> Webhook:
        webhook = Webhook(tenant_id=tenant_id, **data.model_dump())
        self.db.add(webhook)
        await self.db.flush()
        logger.info(f"Created webhook: {webhook.name} for tenant: {tenant_id}")
        return webhook

    async def update_webhook(self, webhook_id: uuid.UUID, tenant_id: uuid.UUID, data: WebhookUpdate) -> Webhook:
        webhook = await self.get_webhook(webhook_id, tenant_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(webhook, field, value)
        await self.db.flush()
        logger.info(f"Updated webhook: {webhook_id}")
        return webhook

    async def get_webhook(self, webhook_id: uuid.UUID, tenant_id: uuid.UUID) -> Webhook:
        return await get_for_tenant(self.db, Webhook, tenant_id, webhook_id, "Webhook")

    async def list_webhooks(
        self,
        tenant_id: uuid.UUID,
        event_type: Optional[str] = None,
        active_only: bool = False,
    ) -> List[Webhook]:
        stmt = tenant_select(Webhook, tenant_id)
        if event_type:
            stmt = stmt.where(Webhook.event_type == event_type)
        if active_only:
            stmt = stmt.where(Webhook.is_active == True)
        result = await self.db.execute(stmt.order_by(Webhook.name))
        return list(result.scalars().all())

    async def delete_webhook(self, webhook_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        webhook = await self.get_webhook(webhook_id, tenant_id)
        await self.db.delete(webhook)
        await self.db.flush()
        logger.info(f"Deleted webhook: {webhook_id}")

    async def toggle_webhook(self, webhook_id: uuid.UUID, tenant_id: uuid.UUID, is_active: bool) -> Webhook:
        webhook = await self.get_webhook(webhook_id, tenant_id)
        webhook.is_active = is_active
        await self.db.flush()
        logger.info(f"Set webhook {webhook_id} status to: {is_active}")
        return webhook

    # ==================== Delivery ====================

    async def trigger(self, event_type: str, data: Dict[str, Any], tenant_id: uuid.UUID) -> int:
        """Deliver an event to every active webhook subscribed to it. Returns the success count."""
        webhooks = await self.list_webhooks(tenant_id, event_type=event_type, active_only=True)
        if not webhooks:
            return 0

        delivered = 0
        async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT_SECONDS, transport=self.transport) as client:
            for webhook in webhooks:
                if await self._deliver_with_retry(client, webhook, data):
                    delivered += 1
        await self.db.flush()
        return delivered

    async def test_webhook(self, webhook_id: uuid.UUID, tenant_id: uuid.UUID) -> bool:
        """Single delivery of a test event, no retries and no counters."""
        webhook = await self.get_webhook(webhook_id, tenant_id)
        data = {
            "test": True,
            "webhook_id": str(webhook.id),
            "webhook_name": webhook.name,
            "timestamp": utcnow().isoformat(),
        }
        async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT_SECONDS, transport=self.transport) as client:
            try:
                await self._send(client, webhook, data)
                return True
            except (httpx.HTTPError, WebhookDeliveryError) as e:
                logger.error(f"Webhook test failed for {webhook.name}: {e}")
                return False

    async def _deliver_with_retry(self, client: httpx.AsyncClient, webhook: Webhook, data: Dict[str, Any]) -> bool:
        webhook.last_triggered_at = utcnow()
        attempts = 1 + max(webhook.retry_count or 0, 0)
        delay = settings.WEBHOOK_RETRY_BACKOFF_SECONDS

        for attempt in range(1, attempts + 1):
            try:
                await self._send(client, webhook, data)
                webhook.success_count = (webhook.success_count or 0) + 1
                webhook.last_error = None
                if attempt > 1:
                    logger.info(f"Webhook {webhook.name} succeeded on retry attempt {attempt - 1}")
                else:
                    logger.info(f"Triggered webhook: {webhook.name} for event: {webhook.event_type}")
                return True
            except (httpx.HTTPError, WebhookDeliveryError) as e:
                webhook.last_error = str(e)[:1000]
                logger.warning(f"Webhook {webhook.name} attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    await asyncio.sleep(delay)
                    delay *= 2

        webhook.failure_count = (webhook.failure_count or 0) + 1
        logger.error(f"Webhook {webhook.name} failed after {attempts} attempt(s)")
        return False

    async def _send(self, client: httpx.AsyncClient, webhook: Webhook, data: Dict[str, Any]) -> None:
        method = (webhook.http_method or "POST").upper()
        if method not in ("POST", "PUT", "PATCH"):
            raise WebhookDeliveryError(f"Unsupported HTTP method: {webhook.http_method}")

        payload = render_payload(webhook.payload_template, data)
        headers = {"Content-Type": "application/json"}
        if webhook.headers:
            headers.update({str(k): str(v) for k, v in webhook.headers.items()})
        if webhook.secret_key:
            headers[SIGNATURE_HEADER] = sign_payload(payload, webhook.secret_key)

        response = await client.request(method, webhook.target_url, content=payload, headers=headers)
        if not response.is_success:
            raise WebhookDeliveryError(f"Webhook returned non-2xx status: {response.status_code}")


async def dispatch_event(event_type: str, data: Dict[str, Any], tenant_id: uuid.UUID) -> None:
    """Deliver an event in its own session. Used from FastAPI background tasks after the response."""
    try:
        async with get_db_session() as db:
            await WebhookService(db).trigger(event_type, data, tenant_id)
    except Exception as e:
        logger.error(f"Webhook dispatch for {event_type} failed for tenant {tenant_id}: {e}")
