"""Service for tenant provisioning and administration."""
import logging
import uuid
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.config import settings
from retailbill.core.exceptions import BusinessError, NotFoundError
from retailbill.core.permissions import Permission
from retailbill.core.security import create_access_token
from retailbill.models.tenant import Tenant, TenantStatus
from retailbill.schemas.security_group import SecurityGroupCreate
from retailbill.schemas.tenant import TenantProvisionRequest, TenantUpdate
from retailbill.services.configuration_service import ConfigurationService
from retailbill.services.document_sequence_service import (
    CREDIT_NOTE_PREFIX_KEY,
    INVOICE_PREFIX_KEY,
    QUOTE_PREFIX_KEY,
)
from retailbill.services.gst_service import ensure_valid_gstin
from retailbill.services.security_group_service import SecurityGroupService

logger = logging.getLogger(__name__)

ADMIN_GROUP_NAME = "Administrators"


class TenantService:
    """Service for handling tenant provisioning."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_slug_available(self, slug: str) -> bool:
        result = await self.db.execute(select(Tenant.id).where(Tenant.slug == slug))
        return result.scalar_one_or_none() is None

    async def provision_tenant(self, data: TenantProvisionRequest) -> Tuple[Tenant, str]:
        """
        Create a tenant with its default configuration and an administrator.

        Steps:
        1. Create the tenant row
        2. Seed document prefix configuration
        3. Create the Administrators security group with every permission
        4. Assign the admin user to it and issue an access token

        Returns:
            (tenant, access_token)
        """
        if not await self.check_slug_available(data.slug):
            raise BusinessError(f"Tenant '{data.slug}' already exists", error_code="TENANT_EXISTS")

        tenant = Tenant(
            name=data.name,
            slug=data.slug,
            status=TenantStatus.ACTIVE.value,
            gstin=ensure_valid_gstin(data.gstin),
            state=data.state,
            contact_email=data.contact_email,
        )
        self.db.add(tenant)
        await self.db.flush()

        config = ConfigurationService(self.db)
        defaults = {
            INVOICE_PREFIX_KEY: settings.DEFAULT_INVOICE_PREFIX,
            CREDIT_NOTE_PREFIX_KEY: settings.DEFAULT_CREDIT_NOTE_PREFIX,
            QUOTE_PREFIX_KEY: settings.DEFAULT_QUOTE_PREFIX,
        }
        for key, value in defaults.items():
            await config.set_tenant_configuration(tenant.id, key, value)

        groups = SecurityGroupService(self.db)
        admin_group = await groups.create_security_group(
            tenant.id,
            SecurityGroupCreate(
                name=ADMIN_GROUP_NAME,
                description="Full access to every billing feature",
                permissions=list(Permission),
            ),
            created_by=data.admin_user_id,
        )
        await groups.assign_groups_to_user(
            tenant.id, data.admin_user_id, [admin_group.id], assigned_by=data.admin_user_id
        )

        token = create_access_token(data.admin_user_id, tenant.id)
        logger.info(f"Provisioned tenant '{tenant.slug}' ({tenant.id}) with admin {data.admin_user_id}")
        return tenant, token

    async def get_tenant(self, tenant_id: uuid.UUID) -> Tenant:
        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant not found: {tenant_id}", error_code="NOT_FOUND")
        return tenant

    async def list_tenants(self) -> List[Tenant]:
        result = await self.db.execute(select(Tenant).order_by(Tenant.name))
        return list(result.scalars().all())

    async def update_tenant(self, tenant_id: uuid.UUID, data: TenantUpdate) -> Tenant:
        tenant = await self.get_tenant(tenant_id)
        changes = data.model_dump(exclude_unset=True)
        if "gstin" in changes:
            changes["gstin"] = ensure_valid_gstin(changes["gstin"])
        if changes.get("status") is not None:
            changes["status"] = changes["status"].value
        for field, value in changes.items():
            setattr(tenant, field, value)
        await self.db.flush()
        logger.info(f"Updated tenant {tenant.slug}")
        return tenant
