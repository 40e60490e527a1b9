"""HTTP surface: tenant resolution, authorization and a full sale."""
import uuid
from decimal import Decimal

from retailbill.core.security import create_access_token
from retailbill.models.document_sequence import DocumentSequence

from helpers import money, provision


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "checks": {"database": "connected"}}


async def test_tenant_header_is_required(client):
    response = await client.get("/api/v1/invoices")

    assert response.status_code == 400
    assert response.json()["error_code"] == "TENANT_REQUIRED"


async def test_unknown_and_malformed_tenants(client):
    response = await client.get("/api/v1/invoices", headers={"X-Tenant-ID": "not-a-uuid"})
    assert response.status_code == 400

    response = await client.get("/api/v1/invoices", headers={"X-Tenant-ID": str(uuid.uuid4())})
    assert response.status_code == 404


async def test_slug_availability(client, admin_headers):
    taken = await client.get("/api/v1/tenants/provision/check/api-store")
    free = await client.get("/api/v1/tenants/provision/check/fresh-store")

    assert taken.json()["available"] is False
    assert free.json()["available"] is True


async def test_bad_token_is_unauthorized(client, admin_headers):
    headers = {**admin_headers, "Authorization": "Bearer nonsense"}

    response = await client.get("/api/v1/invoices", headers=headers)

    assert response.status_code == 401


async def test_user_without_groups_is_forbidden(client, admin_headers):
    tenant_id = admin_headers["X-Tenant-ID"]
    token = create_access_token("cashier-1", uuid.UUID(tenant_id))
    headers = {"X-Tenant-ID": tenant_id, "Authorization": f"Bearer {token}"}

    response = await client.get("/api/v1/invoices", headers=headers)

    assert response.status_code == 403
    assert "Permission denied" in response.json()["detail"]


async def test_token_for_another_tenant_is_forbidden(client, admin_headers):
    other = await provision(client, slug="second-store")
    headers = {"X-Tenant-ID": admin_headers["X-Tenant-ID"], "Authorization": other["Authorization"]}

    response = await client.get("/api/v1/invoices", headers=headers)

    assert response.status_code == 403


async def test_sale_over_http(client, admin_headers):
    product = await client.post(
        "/api/v1/inventory/products",
        json={"name": "Notebook", "sku": "NB-100", "unit_price": "50", "tax_rate": "10"},
        headers=admin_headers,
    )
    assert product.status_code == 201, product.text
    product_id = product.json()["id"]

    received = await client.post(
        "/api/v1/inventory/stock/receive",
        json={"product_id": product_id, "location_id": "STORE-1", "quantity": 5},
        headers=admin_headers,
    )
    assert received.status_code == 201, received.text

    created = await client.post(
        "/api/v1/invoices",
        json={
            "store_id": "STORE-1",
            "counter_id": "C1",
            "items": [{
                "product_id": product_id,
                "product_name": "Notebook",
                "quantity": 2,
                "unit_price": "50",
                "tax_amount": "10",
            }],
        },
        headers=admin_headers,
    )
    assert created.status_code == 201, created.text
    invoice = created.json()
    assert invoice["status"] == "DRAFT"
    assert invoice["invoice_number"] == f"INV/{DocumentSequence.get_financial_year()}/0001"
    assert Decimal(invoice["total_amount"]) == money("110")

    completed = await client.post(
        f"/api/v1/invoices/{invoice['id']}/complete",
        json={"payments": [{"mode": "CASH", "amount": "110"}]},
        headers=admin_headers,
    )
    assert completed.status_code == 200, completed.text
    assert completed.json()["status"] == "COMPLETED"
    assert Decimal(completed.json()["balance_amount"]) == 0

    stock = await client.get(f"/api/v1/inventory/stock/{product_id}/STORE-1", headers=admin_headers)
    assert stock.json()["quantity"] == 3

    found = await client.get(
        f"/api/v1/invoices/number/{invoice['invoice_number']}", headers=admin_headers,
    )
    assert found.status_code == 200
    assert found.json()["id"] == invoice["id"]


async def test_cancelling_a_draft_is_a_conflict(client, admin_headers):
    created = await client.post(
        "/api/v1/invoices",
        json={
            "store_id": "STORE-1",
            "counter_id": "C1",
            "items": [{"product_name": "Pen", "quantity": 1, "unit_price": "20"}],
        },
        headers=admin_headers,
    )
    invoice_id = created.json()["id"]

    response = await client.post(
        f"/api/v1/invoices/{invoice_id}/cancel",
        json={"reason": "wrong customer"},
        headers=admin_headers,
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "INVALID_STATUS_TRANSITION"
    assert body["error"] == "Only completed invoices can be cancelled"
    assert body["type"] == "IllegalStateError"
    assert body["path"] == f"/api/v1/invoices/{invoice_id}/cancel"


async def test_gstin_validation(client, admin_headers):
    valid = await client.get("/api/v1/gst/gstin/29abcde1234f1z5/validate", headers=admin_headers)
    invalid = await client.get("/api/v1/gst/gstin/12345/validate", headers=admin_headers)

    assert valid.json() == {
        "gstin": "29ABCDE1234F1Z5",
        "is_valid": True,
        "state_code": "29",
        "state_name": "Karnataka",
        "pan": "ABCDE1234F",
    }
    assert invalid.json()["is_valid"] is False


async def test_customer_wallet_over_http(client, admin_headers):
    created = await client.post(
        "/api/v1/customers", json={"name": "Gita", "phone": "9700000001"}, headers=admin_headers,
    )
    assert created.status_code == 201, created.text
    customer_id = created.json()["id"]

    topped = await client.post(
        f"/api/v1/customers/{customer_id}/wallet/add", json={"amount": "25.50"}, headers=admin_headers,
    )
    assert topped.status_code == 200, topped.text
    assert Decimal(topped.json()["wallet_balance"]) == money("25.50")

    overdrawn = await client.post(
        f"/api/v1/customers/{customer_id}/wallet/deduct", json={"amount": "30"}, headers=admin_headers,
    )
    assert overdrawn.status_code == 422
    assert overdrawn.json()["error_code"] == "INSUFFICIENT_WALLET_BALANCE"

    redeemed = await client.post(
        f"/api/v1/customers/{customer_id}/loyalty/redeem", json={"points": 100}, headers=admin_headers,
    )
    assert redeemed.status_code == 422
    assert redeemed.json()["error_code"] == "INSUFFICIENT_LOYALTY_POINTS"
