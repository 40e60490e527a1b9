from dataclasses import dataclass
from typing import Annotated, Set
import uuid
import logging

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.database import get_db
from retailbill.core.security import verify_access_token
from retailbill.core.permissions import Permission, PermissionChecker
from retailbill.models.tenant import Tenant
from retailbill.services.security_group_service import SecurityGroupService


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer()

DB = Annotated[AsyncSession, Depends(get_db)]


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    tenant_id: uuid.UUID


async def get_current_tenant(request: Request, db: DB) -> Tenant:
    """
    Dependency to get the tenant named by the X-Tenant-ID header.

    The tenant middleware has already put the raw header value on request.state.
    """
    raw_tenant_id = getattr(request.state, "tenant_id", None) or request.headers.get("X-Tenant-ID")
    if not raw_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required"
        )

    try:
        tenant_id = uuid.UUID(str(raw_tenant_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid tenant id: {raw_tenant_id}"
        )

    tenant = await db.get(Tenant, tenant_id)
    if tenant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant not found"
        )
    if not tenant.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tenant is suspended"
        )
    return tenant


CurrentTenant = Annotated[Tenant, Depends(get_current_tenant)]


async def get_current_user(
    tenant: CurrentTenant,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AuthenticatedUser:
    """
    Dependency to get the current authenticated user.
    The token must have been issued for the tenant named in the request header.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    claims = verify_access_token(credentials.credentials)
    if claims is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    if claims["tenant_id"] != str(tenant.id):
        logger.warning(f"Token for tenant {claims['tenant_id']} used against tenant {tenant.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token does not belong to this tenant"
        )

    return AuthenticatedUser(user_id=claims["user_id"], tenant_id=tenant.id)


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]


async def get_user_permissions(user: CurrentUser, db: DB) -> Set[Permission]:
    """Union of the permissions of the user's active security groups."""
    return await SecurityGroupService(db).get_user_permissions(user.tenant_id, user.user_id)


async def get_permission_checker(
    user: CurrentUser,
    permissions: Annotated[Set[Permission], Depends(get_user_permissions)]
) -> PermissionChecker:
    return PermissionChecker(user.user_id, permissions)


def require_permissions(*required_permissions: Permission):
    """
    Dependency factory to require specific permissions.

    Usage:
        @router.get("/", dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))])
        async def list_invoices():
            ...
    """
    async def permission_dependency(
        permission_checker: Annotated[PermissionChecker, Depends(get_permission_checker)]
    ):
        for permission in required_permissions:
            if not permission_checker.has_permission(permission):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission denied. Required: {Permission(permission).value}"
                )
        return True

    return permission_dependency


def require_any_permission(*required_permissions: Permission):
    """Dependency factory to require any of the specified permissions."""
    async def permission_dependency(
        permission_checker: Annotated[PermissionChecker, Depends(get_permission_checker)]
    ):
        if not permission_checker.has_any_permission(required_permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied. Required any of: {[Permission(p).value for p in required_permissions]}"
            )
        return True

    return permission_dependency


Permissions = Annotated[PermissionChecker, Depends(get_permission_checker)]
