from fastapi import APIRouter, Depends, status

from retailbill.api.deps import DB, CurrentTenant, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.schemas.tenant import (
    TenantProvisionRequest,
    TenantProvisionResponse,
    TenantResponse,
    TenantUpdate,
)
from retailbill.services.tenant_service import TenantService


router = APIRouter(tags=["Tenants"])


@router.post(
    "/provision",
    response_model=TenantProvisionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def provision_tenant(data: TenantProvisionRequest, db: DB):
    """
    Onboard a new tenant.

    Creates the tenant, its default document prefixes and an Administrators
    security group holding every permission, assigned to `admin_user_id`.
    The returned token is valid for that admin on the new tenant.
    """
    tenant, token = await TenantService(db).provision_tenant(data)
    return TenantProvisionResponse(
        tenant=TenantResponse.model_validate(tenant),
        admin_user_id=data.admin_user_id,
        access_token=token,
    )


@router.get("/provision/check/{slug}")
async def check_slug_available(slug: str, db: DB):
    available = await TenantService(db).check_slug_available(slug)
    return {"slug": slug, "available": available}


@router.get("/current", response_model=TenantResponse)
async def get_current_tenant_details(tenant: CurrentTenant, user: CurrentUser):
    return TenantResponse.model_validate(tenant)


@router.patch(
    "/current",
    response_model=TenantResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def update_current_tenant(data: TenantUpdate, db: DB, user: CurrentUser):
    tenant = await TenantService(db).update_tenant(user.tenant_id, data)
    return TenantResponse.model_validate(tenant)
