from contextlib import asynccontextmanager
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from retailbill.config import settings
from retailbill.api.v1.router import api_router
from retailbill.core.exceptions import BillingError
from retailbill.database import init_db, async_session_factory
from retailbill.jobs.scheduler import start_scheduler, shutdown_scheduler
from retailbill.middleware.tenant import tenant_middleware


logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create tables and start the background scheduler.
    Shutdown: stop the scheduler.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Tenants", "description": "Tenant onboarding and profile"},
    {"name": "Security Groups", "description": "Permission groups and user assignments"},
    {"name": "Configuration", "description": "System settings and tenant overrides"},
    {"name": "Customers", "description": "Customer master, wallet and visit history"},
    {"name": "Suppliers", "description": "Supplier master"},
    {"name": "Inventory", "description": "Products, stock levels and movements"},
    {"name": "GST", "description": "GST rate master, tax split and GSTIN validation"},
    {"name": "Offers", "description": "Promotional offers and discount resolution"},
    {"name": "Invoices", "description": "Invoice lifecycle, held invoices and sales summary"},
    {"name": "Credit Notes", "description": "Credit note approval workflow and application"},
    {"name": "Quotes", "description": "Quotations and conversion to invoices"},
    {"name": "Recurring Invoices", "description": "Scheduled invoice generation"},
    {"name": "Webhooks", "description": "Outbound event delivery"},
    {"name": "Side Effects", "description": "Failed stock updates awaiting retry"},
]

API_DESCRIPTION = """
## Retail Billing API

Multi-tenant point-of-sale billing with GST.

### Authentication

Every tenant endpoint needs two headers:
- `X-Tenant-ID`: the tenant id
- `Authorization: Bearer <token>`: a token issued for that tenant

`POST /api/v1/tenants/provision` is public and returns the first admin token.

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Bad Request - Validation failed |
| 401 | Unauthorized - Invalid/expired token |
| 403 | Forbidden - Insufficient permissions or suspended tenant |
| 404 | Not Found - Resource doesn't exist in this tenant |
| 409 | Conflict - Illegal status transition |
| 422 | Unprocessable Entity - Business rule violation |
| 500 | Internal Server Error |
"""

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
    swagger_ui_parameters={
        "deepLinking": True,
        "persistAuthorization": True,
        "filter": True,
    },
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Tenant header check for everything except public routes
app.middleware("http")(tenant_middleware)

app.include_router(api_router)


@app.exception_handler(BillingError)
async def billing_exception_handler(request: Request, exc: BillingError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "error_code": exc.error_code,
            "details": exc.details,
            "type": type(exc).__name__,
            "path": str(request.url.path),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}\n{traceback.format_exc()}"
    )
    content = {
        "error": "Internal server error",
        "type": type(exc).__name__,
        "path": str(request.url.path),
    }
    if settings.DEBUG:
        content["error"] = str(exc)
        content["traceback"] = traceback.format_exc()
    return JSONResponse(status_code=500, content=content)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
