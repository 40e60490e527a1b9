"""
Domain exceptions shared by all billing services.

Services raise these; the API layer maps them to HTTP responses in
retailbill.main. Advisory failures (stock sync, restock, webhook delivery)
are logged by the services and never surface as one of these.
"""
from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base error for billing operations."""

    status_code = 400

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(BillingError):
    """Referenced record is absent or belongs to another tenant."""
    status_code = 404


class IllegalStateError(BillingError):
    """Transition attempted from a status that does not allow it."""
    status_code = 409


class ValidationError(BillingError):
    """Malformed request or a hard-blocking data check failed."""
    status_code = 400


class BusinessError(BillingError):
    """Domain rule violation."""
    status_code = 422
