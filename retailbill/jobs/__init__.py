"""
Background Jobs Module

Scheduled per-tenant tasks:
- Recurring invoice generation
- Retry of failed stock side effects
- Quote expiry
"""

from retailbill.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, get_job_status

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "get_job_status",
]
