"""
Tenant-Aware Job Runner

Runs background jobs once per active tenant. Each tenant gets its own
session and transaction, so a failure in one tenant is rolled back and
logged without affecting the others.

Usage:
    @tenant_job("process_recurring_invoices")
    async def process_recurring_invoices(session, tenant):
        ...
"""

import logging
import asyncio
from typing import Callable, Dict, List, Optional
from datetime import date, datetime, timezone
from functools import wraps

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.database import async_session_factory
from retailbill.models.tenant import Tenant, TenantStatus
from retailbill.services.quote_service import QuoteService
from retailbill.services.recurring_invoice_service import RecurringInvoiceService
from retailbill.services.side_effect_service import SideEffectService

logger = logging.getLogger(__name__)

# Registry of tenant-aware jobs
_tenant_jobs: Dict[str, Callable] = {}


def tenant_job(name: str):
    """
    Decorator to register a tenant-aware background job.

    The decorated function receives:
    - session: AsyncSession; the runner commits it on success
    - tenant: dict with id, name and slug
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(session: AsyncSession, tenant: dict):
            return await func(session, tenant)

        _tenant_jobs[name] = wrapper
        logger.debug(f"Registered tenant job: {name}")
        return wrapper
    return decorator


def registered_jobs() -> List[str]:
    return sorted(_tenant_jobs)


class TenantJobRunner:
    """
    Executes background jobs across all active tenants.

    Tenants run concurrently up to `max_concurrent`; use 1 on SQLite.
    """

    def __init__(self, max_concurrent: int = 5, session_factory=None):
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self.session_factory = session_factory or async_session_factory

    async def get_active_tenants(self) -> List[dict]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Tenant)
                .where(Tenant.status == TenantStatus.ACTIVE.value)
                .order_by(Tenant.created_at)
            )
            return [
                {"id": t.id, "name": t.name, "slug": t.slug}
                for t in result.scalars().all()
            ]

    async def run_job_for_tenant(self, job_name: str, job_func: Callable, tenant: dict) -> dict:
        start_time = datetime.now(timezone.utc)
        result = {
            "tenant_id": str(tenant["id"]),
            "slug": tenant["slug"],
            "job": job_name,
            "status": "pending",
            "started_at": start_time.isoformat(),
            "error": None,
            "duration_ms": 0,
        }

        try:
            async with self._semaphore:
                async with self.session_factory() as session:
                    try:
                        await job_func(session, tenant)
                        await session.commit()
                        result["status"] = "success"
                    except Exception:
                        await session.rollback()
                        raise
        except Exception as e:
            result["status"] = "failed"
            result["error"] = str(e)
            logger.error(f"Job '{job_name}' failed for tenant '{tenant['slug']}': {e}")

        end_time = datetime.now(timezone.utc)
        result["duration_ms"] = int((end_time - start_time).total_seconds() * 1000)
        result["completed_at"] = end_time.isoformat()
        return result

    async def run_job(self, job_name: str) -> dict:
        if job_name not in _tenant_jobs:
            raise ValueError(f"Unknown job: {job_name}. Registered: {registered_jobs()}")

        job_func = _tenant_jobs[job_name]
        start_time = datetime.now(timezone.utc)
        logger.info(f"Starting tenant job: {job_name}")

        tenants = await self.get_active_tenants()
        if not tenants:
            logger.info(f"No active tenants found. Job '{job_name}' skipped.")
            return {
                "job": job_name,
                "status": "skipped",
                "reason": "no_active_tenants",
                "tenant_count": 0,
            }

        results = await asyncio.gather(
            *(self.run_job_for_tenant(job_name, job_func, tenant) for tenant in tenants)
        )
        successful = sum(1 for r in results if r["status"] == "success")
        failed = len(results) - successful

        total_duration = int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)
        logger.info(
            f"Job '{job_name}' completed: {successful}/{len(tenants)} successful "
            f"in {total_duration}ms"
        )
        return {
            "job": job_name,
            "status": "completed",
            "duration_ms": total_duration,
            "tenant_count": len(tenants),
            "successful": successful,
            "failed": failed,
            "results": list(results),
        }


# Global runner instance
_runner: Optional[TenantJobRunner] = None


def get_tenant_job_runner() -> TenantJobRunner:
    global _runner
    if _runner is None:
        _runner = TenantJobRunner()
    return _runner


async def run_tenant_job(job_name: str) -> dict:
    return await get_tenant_job_runner().run_job(job_name)


# ============================================================
# TENANT-AWARE JOB IMPLEMENTATIONS
# ============================================================

@tenant_job("process_recurring_invoices")
async def process_recurring_invoices_job(session: AsyncSession, tenant: dict):
    """Generate invoices for every due recurring schedule."""
    invoices = await RecurringInvoiceService(session).process_due_invoices(tenant["id"], date.today())
    if invoices:
        logger.info(f"Tenant '{tenant['slug']}': generated {len(invoices)} recurring invoice(s)")


@tenant_job("retry_pending_side_effects")
async def retry_pending_side_effects_job(session: AsyncSession, tenant: dict):
    await SideEffectService(session).retry_pending(tenant["id"])


@tenant_job("expire_quotes")
async def expire_quotes_job(session: AsyncSession, tenant: dict):
    """SENT quotes past valid_until become EXPIRED."""
    expired = await QuoteService(session).mark_expired_quotes(tenant["id"], date.today())
    if expired:
        logger.info(f"Tenant '{tenant['slug']}': expired {expired} quote(s)")
