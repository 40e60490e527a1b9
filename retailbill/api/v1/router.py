from fastapi import APIRouter

from retailbill.api.v1.endpoints import (
    # Tenant onboarding
    tenants,
    # Access control
    security_groups,
    configuration,
    # Masters
    customers,
    inventory,
    gst,
    offers,
    # Billing
    invoices,
    credit_notes,
    quotes,
    recurring,
    # Integrations
    webhooks,
    side_effects,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Tenant Onboarding (Public) ====================
api_router.include_router(tenants.router, prefix="/tenants")

# ==================== Access Control ====================
api_router.include_router(security_groups.router, prefix="/security-groups")
api_router.include_router(configuration.router, prefix="/configuration")

# ==================== Masters ====================
api_router.include_router(customers.router, prefix="/customers")
api_router.include_router(customers.supplier_router, prefix="/suppliers")
api_router.include_router(inventory.router, prefix="/inventory")
api_router.include_router(gst.router, prefix="/gst")
api_router.include_router(offers.router, prefix="/offers")

# ==================== Billing ====================
api_router.include_router(invoices.router, prefix="/invoices")
api_router.include_router(credit_notes.router, prefix="/credit-notes")
api_router.include_router(quotes.router, prefix="/quotes")
api_router.include_router(recurring.router, prefix="/recurring-invoices")

# ==================== Integrations ====================
api_router.include_router(webhooks.router, prefix="/webhooks")
api_router.include_router(side_effects.router, prefix="/side-effects")
