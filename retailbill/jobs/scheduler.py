"""
APScheduler Configuration

Background job scheduler with tenant-aware job execution. Every job is
registered with @tenant_job and run by the TenantJobRunner across all
active tenants; a failure in one tenant does not affect the others.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from retailbill.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,
    'max_instances': 1,
    'misfire_grace_time': 60,
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE
)


async def run_tenant_aware_job(job_name: str):
    """Called by APScheduler; delegates to the TenantJobRunner."""
    from retailbill.jobs.tenant_job_runner import run_tenant_job

    try:
        result = await run_tenant_job(job_name)
        logger.info(
            f"Job '{job_name}' completed: "
            f"{result.get('successful', 0)}/{result.get('tenant_count', 0)} tenants successful"
        )
    except Exception as e:
        logger.error(f"Job '{job_name}' failed: {e}")


def start_scheduler():
    """Start the background job scheduler with tenant-aware jobs."""
    if scheduler.running:
        return

    # Registers the @tenant_job functions
    from retailbill.jobs import tenant_job_runner  # noqa: F401

    scheduler.add_job(
        run_tenant_aware_job,
        'interval',
        minutes=settings.RECURRING_INVOICE_INTERVAL_MINUTES,
        args=['process_recurring_invoices'],
        id='process_recurring_invoices',
        name='[Multi-Tenant] Process Recurring Invoices',
        replace_existing=True,
    )

    scheduler.add_job(
        run_tenant_aware_job,
        'interval',
        minutes=settings.SIDE_EFFECT_RETRY_INTERVAL_MINUTES,
        args=['retry_pending_side_effects'],
        id='retry_pending_side_effects',
        name='[Multi-Tenant] Retry Pending Side Effects',
        replace_existing=True,
    )

    scheduler.add_job(
        run_tenant_aware_job,
        'interval',
        hours=settings.QUOTE_EXPIRY_INTERVAL_HOURS,
        args=['expire_quotes'],
        id='expire_quotes',
        name='[Multi-Tenant] Expire Quotes',
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Multi-tenant background job scheduler started")

    for job in scheduler.get_jobs():
        logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in scheduler.get_jobs()
    ]
