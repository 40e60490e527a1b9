"""
Configuration Service

Two-level configuration lookup: a tenant override wins over the system-wide
value, which wins over the caller's default.
"""
import logging
import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.core.exceptions import BusinessError, NotFoundError
from retailbill.core.tenant_context import tenant_select
from retailbill.models.tenant import SystemConfiguration, TenantConfiguration
from retailbill.schemas.configuration import (
    SystemConfigurationCreate,
    SystemConfigurationUpdate,
)

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


class ConfigurationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Lookup ====================

    async def get_config_value(
        self,
        key: str,
        tenant_id: Optional[uuid.UUID] = None,
        default: Optional[str] = None,
    ) -> Optional[str]:
        if tenant_id is not None:
            tenant_config = await self.get_tenant_configuration(tenant_id, key)
            if tenant_config is not None and tenant_config.config_value is not None:
                return tenant_config.config_value

        system_config = await self.get_system_configuration(key)
        if system_config is not None and system_config.config_value is not None:
            return system_config.config_value

        return default

    async def get_int_config(self, key: str, tenant_id: Optional[uuid.UUID] = None, default: int = 0) -> int:
        value = await self.get_config_value(key, tenant_id)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid integer value for config {key}: {value}")
            return default

    async def get_bool_config(self, key: str, tenant_id: Optional[uuid.UUID] = None, default: bool = False) -> bool:
        value = await self.get_config_value(key, tenant_id)
        if value is None:
            return default
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        logger.warning(f"Invalid boolean value for config {key}: {value}")
        return default

    # ==================== System configuration ====================

    async def get_system_configuration(self, key: str) -> Optional[SystemConfiguration]:
        result = await self.db.execute(
            select(SystemConfiguration).where(SystemConfiguration.config_key == key)
        )
        return result.scalar_one_or_none()

    async def list_system_configurations(self, category: Optional[str] = None) -> List[SystemConfiguration]:
        stmt = select(SystemConfiguration)
        if category:
            stmt = stmt.where(SystemConfiguration.category == category)
        result = await self.db.execute(stmt.order_by(SystemConfiguration.config_key))
        return list(result.scalars().all())

    async def create_system_configuration(self, data: SystemConfigurationCreate) -> SystemConfiguration:
        if await self.get_system_configuration(data.config_key) is not None:
            raise BusinessError(
                "Configuration key already exists",
                error_code="CONFIG_KEY_EXISTS",
                details={"config_key": data.config_key},
            )
        config = SystemConfiguration(**data.model_dump())
        self.db.add(config)
        await self.db.flush()
        logger.info(f"Created system configuration {config.config_key}")
        return config

    async def update_system_configuration(self, key: str, data: SystemConfigurationUpdate) -> SystemConfiguration:
        config = await self.get_system_configuration(key)
        if config is None:
            raise NotFoundError(f"Configuration not found: {key}", error_code="NOT_FOUND")
        if not config.is_editable:
            raise BusinessError("Configuration is not editable", error_code="CONFIG_NOT_EDITABLE")

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(config, field, value)
        await self.db.flush()
        return config

    async def delete_system_configuration(self, key: str) -> None:
        config = await self.get_system_configuration(key)
        if config is None:
            raise NotFoundError(f"Configuration not found: {key}", error_code="NOT_FOUND")
        if not config.is_editable:
            raise BusinessError("Configuration is not editable", error_code="CONFIG_NOT_EDITABLE")
        await self.db.delete(config)
        await self.db.flush()

    # ==================== Tenant configuration ====================

    async def get_tenant_configuration(self, tenant_id: uuid.UUID, key: str) -> Optional[TenantConfiguration]:
        result = await self.db.execute(
            tenant_select(TenantConfiguration, tenant_id, TenantConfiguration.config_key == key)
        )
        return result.scalar_one_or_none()

    async def list_tenant_configurations(self, tenant_id: uuid.UUID) -> List[TenantConfiguration]:
        result = await self.db.execute(
            tenant_select(TenantConfiguration, tenant_id).order_by(TenantConfiguration.config_key)
        )
        return list(result.scalars().all())

    async def set_tenant_configuration(
        self,
        tenant_id: uuid.UUID,
        key: str,
        value: Optional[str],
        description: Optional[str] = None,
    ) -> TenantConfiguration:
        """Create or replace the tenant's value for `key`."""
        config = await self.get_tenant_configuration(tenant_id, key)
        if config is None:
            config = TenantConfiguration(
                tenant_id=tenant_id,
                config_key=key,
                config_value=value,
                description=description,
            )
            self.db.add(config)
        else:
            config.config_value = value
            if description is not None:
                config.description = description
        await self.db.flush()
        logger.info(f"Set tenant configuration {key} for tenant {tenant_id}")
        return config

    async def delete_tenant_configuration(self, tenant_id: uuid.UUID, key: str) -> None:
        config = await self.get_tenant_configuration(tenant_id, key)
        if config is None:
            raise NotFoundError(f"Tenant configuration not found: {key}", error_code="NOT_FOUND")
        await self.db.delete(config)
        await self.db.flush()
