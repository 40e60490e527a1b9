from decimal import Decimal
from typing import Dict

import httpx

ADMIN_USER = "admin-1"


async def provision(client: httpx.AsyncClient, slug: str = "api-store", state: str = "Karnataka") -> Dict[str, str]:
    """Provision a tenant over HTTP and return the admin's request headers."""
    response = await client.post(
        "/api/v1/tenants/provision",
        json={
            "name": "Api Store",
            "slug": slug,
            "admin_user_id": ADMIN_USER,
            "state": state,
        },
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "X-Tenant-ID": body["tenant"]["id"],
        "Authorization": f"Bearer {body['access_token']}",
    }


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))
