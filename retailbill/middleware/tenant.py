"""
Tenant middleware for multi-tenant request handling
"""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-ID"

# Routes that do not belong to a tenant
PUBLIC_ROUTES = {
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}

PUBLIC_PREFIXES = (
    "/docs/",
    "/api/v1/tenants/provision",
)


def is_public_path(path: str) -> bool:
    return path in PUBLIC_ROUTES or path.startswith(PUBLIC_PREFIXES)


async def tenant_middleware(request: Request, call_next):
    """
    Middleware to inject tenant context into request

    Reads the X-Tenant-ID header and stores it on request.state.tenant_id.
    Whether the tenant exists is checked by the CurrentTenant dependency.
    Public routes (health check, docs, onboarding) skip the check.
    """
    if request.method == "OPTIONS" or is_public_path(request.url.path):
        return await call_next(request)

    tenant_id = request.headers.get(TENANT_HEADER)
    if not tenant_id:
        logger.warning(f"Missing {TENANT_HEADER} header for {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": f"{TENANT_HEADER} header is required",
                "error_code": "TENANT_REQUIRED",
                "path": request.url.path,
            },
        )

    request.state.tenant_id = tenant_id
    return await call_next(request)
