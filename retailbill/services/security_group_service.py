"""
Security Group Service

Security groups are tenant-scoped permission sets. A user's effective
permissions are the union of the permissions of the active groups the user
is assigned to.
"""
import logging
import uuid
from typing import Iterable, List, Set

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from retailbill.core.exceptions import BusinessError, NotFoundError
from retailbill.core.permissions import Permission
from retailbill.core.tenant_context import tenant_select, get_for_tenant, get_by_field
from retailbill.models.security_group import SecurityGroup, UserSecurityGroup
from retailbill.schemas.security_group import SecurityGroupCreate, SecurityGroupUpdate

logger = logging.getLogger(__name__)


class SecurityGroupService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== GROUP METHODS ====================

    async def create_security_group(
        self,
        tenant_id: uuid.UUID,
        data: SecurityGroupCreate,
        created_by: str = None,
    ) -> SecurityGroup:
        existing = await get_by_field(self.db, SecurityGroup, tenant_id, SecurityGroup.name, data.name)
        if existing:
            raise BusinessError(
                f"Security group with name '{data.name}' already exists",
                error_code="SECURITY_GROUP_EXISTS",
            )

        group = SecurityGroup(
            tenant_id=tenant_id,
            name=data.name,
            description=data.description,
            is_active=data.is_active,
            created_by=created_by,
        )
        group.permissions = data.permissions
        self.db.add(group)
        await self.db.flush()

        logger.info(f"Created security group '{group.name}' for tenant {tenant_id}")
        return group

    async def update_security_group(
        self,
        group_id: uuid.UUID,
        tenant_id: uuid.UUID,
        data: SecurityGroupUpdate,
        updated_by: str = None,
    ) -> SecurityGroup:
        group = await self.get_security_group(group_id, tenant_id)

        if data.name and data.name != group.name:
            existing = await get_by_field(self.db, SecurityGroup, tenant_id, SecurityGroup.name, data.name)
            if existing:
                raise BusinessError(
                    f"Security group with name '{data.name}' already exists",
                    error_code="SECURITY_GROUP_EXISTS",
                )

        changes = data.model_dump(exclude_unset=True, exclude={"permissions"})
        for field, value in changes.items():
            setattr(group, field, value)
        if data.permissions is not None:
            group.permissions = data.permissions

        group.updated_by = updated_by
        await self.db.flush()
        logger.info(f"Updated security group '{group.name}'")
        return group

    async def get_security_group(self, group_id: uuid.UUID, tenant_id: uuid.UUID) -> SecurityGroup:
        return await get_for_tenant(self.db, SecurityGroup, tenant_id, group_id, "Security group")

    async def list_security_groups(self, tenant_id: uuid.UUID, include_inactive: bool = True) -> List[SecurityGroup]:
        stmt = tenant_select(SecurityGroup, tenant_id)
        if not include_inactive:
            stmt = stmt.where(SecurityGroup.is_active == True)
        result = await self.db.execute(stmt.order_by(SecurityGroup.name))
        return list(result.scalars().all())

    async def delete_security_group(self, group_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        group = await get_for_tenant(
            self.db, SecurityGroup, tenant_id, group_id, "Security group",
            options=(selectinload(SecurityGroup.assignments),),
        )

        assigned = len(group.assignments)
        if assigned:
            raise BusinessError(
                f"Security group '{group.name}' is assigned to {assigned} user(s)",
                error_code="SECURITY_GROUP_IN_USE",
            )

        await self.db.delete(group)
        await self.db.flush()
        logger.info(f"Deleted security group '{group.name}'")

    # ==================== USER ASSIGNMENTS ====================

    async def assign_groups_to_user(
        self,
        tenant_id: uuid.UUID,
        user_id: str,
        group_ids: Iterable[uuid.UUID],
        assigned_by: str = None,
    ) -> List[UserSecurityGroup]:
        """Replace the user's group assignments within the tenant."""
        group_ids = list(dict.fromkeys(group_ids))
        groups = []
        for group_id in group_ids:
            group = await self.db.get(SecurityGroup, group_id)
            if group is None:
                raise NotFoundError(f"Security group not found: {group_id}", error_code="NOT_FOUND")
            if group.tenant_id != tenant_id:
                raise BusinessError(
                    f"Security group {group_id} belongs to another tenant",
                    error_code="TENANT_MISMATCH",
                )
            groups.append(group)

        await self.db.execute(
            delete(UserSecurityGroup).where(
                UserSecurityGroup.tenant_id == tenant_id,
                UserSecurityGroup.user_id == user_id,
            )
        )

        assignments = [
            UserSecurityGroup(
                tenant_id=tenant_id,
                user_id=user_id,
                security_group_id=group.id,
                assigned_by=assigned_by,
            )
            for group in groups
        ]
        self.db.add_all(assignments)
        await self.db.flush()

        logger.info(f"Assigned {len(assignments)} security group(s) to user {user_id}")
        return assignments

    async def remove_user_from_group(self, tenant_id: uuid.UUID, user_id: str, group_id: uuid.UUID) -> None:
        result = await self.db.execute(
            tenant_select(
                UserSecurityGroup, tenant_id,
                UserSecurityGroup.user_id == user_id,
                UserSecurityGroup.security_group_id == group_id,
            )
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            raise NotFoundError(
                f"User {user_id} is not assigned to security group {group_id}",
                error_code="NOT_FOUND",
            )
        await self.db.delete(assignment)
        await self.db.flush()

    async def get_user_groups(self, tenant_id: uuid.UUID, user_id: str) -> List[SecurityGroup]:
        result = await self.db.execute(
            select(SecurityGroup)
            .join(UserSecurityGroup, UserSecurityGroup.security_group_id == SecurityGroup.id)
            .where(
                UserSecurityGroup.tenant_id == tenant_id,
                UserSecurityGroup.user_id == user_id,
            )
            .order_by(SecurityGroup.name)
        )
        return list(result.scalars().all())

    # ==================== PERMISSION CHECKS ====================

    async def get_user_permissions(self, tenant_id: uuid.UUID, user_id: str) -> Set[Permission]:
        permissions: Set[Permission] = set()
        for group in await self.get_user_groups(tenant_id, user_id):
            if group.is_active:
                permissions |= group.permissions
        return permissions

    async def has_permission(self, tenant_id: uuid.UUID, user_id: str, permission: Permission) -> bool:
        return Permission(permission) in await self.get_user_permissions(tenant_id, user_id)

    async def has_any_permission(self, tenant_id: uuid.UUID, user_id: str, permissions: Iterable[Permission]) -> bool:
        granted = await self.get_user_permissions(tenant_id, user_id)
        return any(Permission(p) in granted for p in permissions)

    async def has_all_permissions(self, tenant_id: uuid.UUID, user_id: str, permissions: Iterable[Permission]) -> bool:
        granted = await self.get_user_permissions(tenant_id, user_id)
        return all(Permission(p) in granted for p in permissions)
