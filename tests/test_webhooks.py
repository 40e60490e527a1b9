"""Webhook delivery with a mocked HTTP transport."""
import base64
import hashlib
import hmac
import json

import httpx
import pytest
from pydantic import ValidationError as SchemaValidationError

from retailbill.schemas.webhook import WebhookCreate
from retailbill.services.webhook_service import SIGNATURE_HEADER, WebhookService, render_payload, sign_payload


class Recorder:
    """Mock transport handler answering with a scripted list of status codes."""

    def __init__(self, *statuses):
        self.statuses = list(statuses) or [200]
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return httpx.Response(status)


def webhook_request(**fields) -> WebhookCreate:
    values = dict(
        name="Accounting",
        event_type="invoice.completed",
        target_url="https://hooks.example.com/billing",
        retry_count=2,
    )
    values.update(fields)
    return WebhookCreate(**values)


def test_signature_is_base64_hmac_sha256():
    expected = base64.b64encode(
        hmac.new(b"s3cret", b'{"a": 1}', hashlib.sha256).digest()
    ).decode()
    assert sign_payload('{"a": 1}', "s3cret") == expected


def test_template_placeholders():
    body = render_payload('{"no": "{{invoice_number}}", "total": {{total}}, "x": "{{missing}}"}',
                          {"invoice_number": "INV/2026-27/0001", "total": 220, "customer": None})
    assert json.loads(body) == {"no": "INV/2026-27/0001", "total": 220, "x": "{{missing}}"}
    assert json.loads(render_payload(None, {"total": 220})) == {"total": 220}


def test_template_values_are_escaped():
    body = render_payload('{"customer": "{{customer_name}}"}', {"customer_name": 'Sharma "Kirana" \\ Sons'})
    assert json.loads(body) == {"customer": 'Sharma "Kirana" \\ Sons'}


def test_unknown_event_and_bad_url_are_rejected():
    with pytest.raises(SchemaValidationError):
        webhook_request(event_type="invoice.exploded")
    with pytest.raises(SchemaValidationError):
        webhook_request(target_url="ftp://hooks.example.com")


async def test_delivery_is_signed_and_counted(db, tenant):
    recorder = Recorder(200)
    service = WebhookService(db, transport=httpx.MockTransport(recorder))
    webhook = await service.create_webhook(
        tenant.id, webhook_request(secret_key="s3cret", headers={"X-Source": "billing"}),
    )

    delivered = await service.trigger("invoice.completed", {"invoice_number": "INV/1"}, tenant.id)

    assert delivered == 1
    request = recorder.requests[0]
    assert request.method == "POST"
    assert request.headers["X-Source"] == "billing"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers[SIGNATURE_HEADER] == sign_payload(request.content.decode(), "s3cret")
    assert json.loads(request.content) == {"invoice_number": "INV/1"}
    assert webhook.success_count == 1
    assert webhook.failure_count == 0
    assert webhook.last_triggered_at is not None


async def test_retries_then_succeeds(db, tenant):
    recorder = Recorder(500, 503, 200)
    service = WebhookService(db, transport=httpx.MockTransport(recorder))
    webhook = await service.create_webhook(tenant.id, webhook_request())

    assert await service.trigger("invoice.completed", {}, tenant.id) == 1
    assert len(recorder.requests) == 3
    assert webhook.success_count == 1
    assert webhook.failure_count == 0


async def test_exhausted_retries_count_a_failure(db, tenant):
    recorder = Recorder(500)
    service = WebhookService(db, transport=httpx.MockTransport(recorder))
    webhook = await service.create_webhook(tenant.id, webhook_request(retry_count=1))

    assert await service.trigger("invoice.completed", {}, tenant.id) == 0
    assert len(recorder.requests) == 2
    assert webhook.failure_count == 1
    assert webhook.success_count == 0
    assert "500" in webhook.last_error


async def test_only_active_subscribers_receive_events(db, tenant):
    recorder = Recorder(200)
    service = WebhookService(db, transport=httpx.MockTransport(recorder))
    await service.create_webhook(tenant.id, webhook_request(name="A"))
    paused = await service.create_webhook(tenant.id, webhook_request(name="B"))
    await service.toggle_webhook(paused.id, tenant.id, False)
    await service.create_webhook(tenant.id, webhook_request(name="C", event_type="credit_note.issued"))

    assert await service.trigger("invoice.completed", {}, tenant.id) == 1
    assert await service.trigger("invoice.cancelled", {}, tenant.id) == 0
    assert len(recorder.requests) == 1


async def test_test_webhook_makes_one_attempt(db, tenant):
    recorder = Recorder(500)
    service = WebhookService(db, transport=httpx.MockTransport(recorder))
    webhook = await service.create_webhook(tenant.id, webhook_request(retry_count=5, http_method="PUT"))

    assert await service.test_webhook(webhook.id, tenant.id) is False
    assert len(recorder.requests) == 1
    assert recorder.requests[0].method == "PUT"
    assert json.loads(recorder.requests[0].content)["test"] is True
    assert webhook.failure_count == 0
