"""Tenant-aware background jobs."""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from retailbill.database import async_session_factory
from retailbill.jobs.tenant_job_runner import TenantJobRunner, registered_jobs, tenant_job
from retailbill.models.invoice import Invoice
from retailbill.models.recurring import RecurringFrequency, RecurringInvoice
from retailbill.models.tenant import TenantStatus
from retailbill.schemas.customer import CustomerCreate
from retailbill.schemas.recurring import RecurringInvoiceCreate
from retailbill.schemas.tenant import TenantProvisionRequest
from retailbill.services.customer_service import CustomerService
from retailbill.services.recurring_invoice_service import RecurringInvoiceService
from retailbill.services.tenant_service import TenantService

from helpers import ADMIN_USER


@pytest.fixture
def runner():
    return TenantJobRunner(max_concurrent=1, session_factory=async_session_factory)


def test_jobs_are_registered():
    assert {"process_recurring_invoices", "retry_pending_side_effects", "expire_quotes"} <= set(registered_jobs())


async def test_unknown_job(runner):
    with pytest.raises(ValueError, match="Unknown job"):
        await runner.run_job("make_coffee")


async def test_no_tenants_skips(runner):
    result = await runner.run_job("expire_quotes")
    assert result["status"] == "skipped"
    assert result["tenant_count"] == 0


async def test_recurring_job_commits_per_tenant(db, tenant, runner):
    customer = await CustomerService(db).create_customer(
        tenant.id, CustomerCreate(name="Hostel", phone="08012345678", state="Karnataka"),
    )
    await RecurringInvoiceService(db).create_recurring_invoice(
        tenant.id, ADMIN_USER,
        RecurringInvoiceCreate(
            customer_id=customer.id,
            frequency=RecurringFrequency.WEEKLY,
            start_date=date.today() - timedelta(days=1),
            amount=Decimal("250"),
        ),
    )
    await db.commit()

    result = await runner.run_job("process_recurring_invoices")

    assert result["status"] == "completed"
    assert (result["tenant_count"], result["successful"], result["failed"]) == (1, 1, 0)
    assert result["results"][0]["slug"] == "corner-store"

    invoices = (await db.execute(select(Invoice).where(Invoice.tenant_id == tenant.id))).scalars().all()
    assert len(invoices) == 1
    schedule = (await db.execute(select(RecurringInvoice))).scalar_one()
    await db.refresh(schedule)
    assert schedule.invoices_generated == 1
    assert schedule.next_invoice_date == date.today() + timedelta(days=6)


async def test_failure_in_one_tenant_does_not_stop_others(db, tenant, runner):
    other, _ = await TenantService(db).provision_tenant(
        TenantProvisionRequest(name="Other", slug="other-store", admin_user_id=ADMIN_USER, state="Goa")
    )
    suspended, _ = await TenantService(db).provision_tenant(
        TenantProvisionRequest(name="Closed", slug="closed-store", admin_user_id=ADMIN_USER, state="Goa")
    )
    suspended.status = TenantStatus.SUSPENDED.value
    await db.commit()

    seen = []

    @tenant_job("flaky_for_corner_store")
    async def flaky(session, tenant_info):
        seen.append(tenant_info["slug"])
        if tenant_info["slug"] == "corner-store":
            raise RuntimeError("boom")

    result = await runner.run_job("flaky_for_corner_store")

    assert sorted(seen) == ["corner-store", "other-store"]
    assert result["successful"] == 1
    assert result["failed"] == 1
    failed = [r for r in result["results"] if r["status"] == "failed"]
    assert failed[0]["slug"] == "corner-store"
    assert failed[0]["error"] == "boom"
