from typing import Optional, List

from fastapi import APIRouter, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.schemas.configuration import (
    SystemConfigurationCreate,
    SystemConfigurationUpdate,
    SystemConfigurationResponse,
    TenantConfigurationSet,
    TenantConfigurationResponse,
    ConfigValueResponse,
)
from retailbill.services.configuration_service import ConfigurationService


router = APIRouter(tags=["Configuration"])


@router.get(
    "/value/{config_key}",
    response_model=ConfigValueResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_VIEW))]
)
async def get_config_value(config_key: str, db: DB, user: CurrentUser):
    """Effective value: the tenant override if set, otherwise the system value."""
    value = await ConfigurationService(db).get_config_value(config_key, user.tenant_id)
    return ConfigValueResponse(config_key=config_key, config_value=value)


# ==================== System configuration ====================

@router.get(
    "/system",
    response_model=List[SystemConfigurationResponse],
    dependencies=[Depends(require_permissions(Permission.SETTINGS_VIEW))]
)
async def list_system_configurations(db: DB, user: CurrentUser, category: Optional[str] = Query(None)):
    configs = await ConfigurationService(db).list_system_configurations(category)
    return [SystemConfigurationResponse.model_validate(c) for c in configs]


@router.post(
    "/system",
    response_model=SystemConfigurationResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def create_system_configuration(data: SystemConfigurationCreate, db: DB, user: CurrentUser):
    config = await ConfigurationService(db).create_system_configuration(data)
    return SystemConfigurationResponse.model_validate(config)


@router.patch(
    "/system/{config_key}",
    response_model=SystemConfigurationResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def update_system_configuration(
    config_key: str,
    data: SystemConfigurationUpdate,
    db: DB,
    user: CurrentUser,
):
    config = await ConfigurationService(db).update_system_configuration(config_key, data)
    return SystemConfigurationResponse.model_validate(config)


@router.delete(
    "/system/{config_key}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def delete_system_configuration(config_key: str, db: DB, user: CurrentUser):
    await ConfigurationService(db).delete_system_configuration(config_key)


# ==================== Tenant configuration ====================

@router.get(
    "/tenant",
    response_model=List[TenantConfigurationResponse],
    dependencies=[Depends(require_permissions(Permission.SETTINGS_VIEW))]
)
async def list_tenant_configurations(db: DB, user: CurrentUser):
    configs = await ConfigurationService(db).list_tenant_configurations(user.tenant_id)
    return [TenantConfigurationResponse.model_validate(c) for c in configs]


@router.put(
    "/tenant/{config_key}",
    response_model=TenantConfigurationResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def set_tenant_configuration(config_key: str, data: TenantConfigurationSet, db: DB, user: CurrentUser):
    config = await ConfigurationService(db).set_tenant_configuration(
        user.tenant_id, config_key, data.config_value, data.description
    )
    return TenantConfigurationResponse.model_validate(config)


@router.delete(
    "/tenant/{config_key}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def delete_tenant_configuration(config_key: str, db: DB, user: CurrentUser):
    await ConfigurationService(db).delete_tenant_configuration(user.tenant_id, config_key)
