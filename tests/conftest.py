"""
Shared fixtures.

The application reads its settings at import time, so the environment is
prepared before anything from retailbill is imported. Every test gets a
fresh SQLite database.
"""
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="retailbill-tests-")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["WEBHOOK_RETRY_BACKOFF_SECONDS"] = "0"
os.environ["DEBUG"] = "false"

import httpx  # noqa: E402
import pytest  # noqa: E402

from retailbill.database import async_session_factory, drop_db, engine, init_db  # noqa: E402
from retailbill.main import app  # noqa: E402
from retailbill.schemas.tenant import TenantProvisionRequest  # noqa: E402
from retailbill.services.tenant_service import TenantService  # noqa: E402

from helpers import ADMIN_USER, provision  # noqa: E402


@pytest.fixture(autouse=True)
async def database():
    await init_db()
    yield
    await drop_db()
    await engine.dispose()


@pytest.fixture
async def db():
    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def tenant(db):
    """A provisioned tenant in Karnataka with an administrator."""
    tenant, _ = await TenantService(db).provision_tenant(
        TenantProvisionRequest(
            name="Corner Store",
            slug="corner-store",
            admin_user_id=ADMIN_USER,
            state="Karnataka",
        )
    )
    await db.commit()
    return tenant


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def admin_headers(client):
    return await provision(client)
