from typing import List
import uuid

from fastapi import APIRouter, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, Permissions, require_permissions
from retailbill.core.permissions import Permission
from retailbill.schemas.security_group import (
    SecurityGroupCreate,
    SecurityGroupUpdate,
    SecurityGroupResponse,
    UserGroupAssignmentRequest,
    UserSecurityGroupResponse,
    UserPermissionsResponse,
)
from retailbill.services.security_group_service import SecurityGroupService


router = APIRouter(tags=["Security Groups"])


@router.get("/permissions", response_model=List[Permission])
async def list_available_permissions(user: CurrentUser):
    """Every permission a security group can grant."""
    return list(Permission)


@router.get("/me/permissions", response_model=UserPermissionsResponse)
async def get_my_permissions(user: CurrentUser, checker: Permissions):
    return UserPermissionsResponse(user_id=user.user_id, permissions=sorted(checker.permissions))


@router.post(
    "",
    response_model=SecurityGroupResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.SECURITY_GROUP_CREATE))]
)
async def create_security_group(data: SecurityGroupCreate, db: DB, user: CurrentUser):
    group = await SecurityGroupService(db).create_security_group(user.tenant_id, data, created_by=user.user_id)
    return SecurityGroupResponse.model_validate(group)


@router.get(
    "",
    response_model=List[SecurityGroupResponse],
    dependencies=[Depends(require_permissions(Permission.SECURITY_GROUP_VIEW))]
)
async def list_security_groups(db: DB, user: CurrentUser, include_inactive: bool = Query(True)):
    groups = await SecurityGroupService(db).list_security_groups(user.tenant_id, include_inactive=include_inactive)
    return [SecurityGroupResponse.model_validate(g) for g in groups]


@router.get(
    "/users/{user_id}",
    response_model=List[SecurityGroupResponse],
    dependencies=[Depends(require_permissions(Permission.SECURITY_GROUP_VIEW))]
)
async def get_user_groups(user_id: str, db: DB, user: CurrentUser):
    groups = await SecurityGroupService(db).get_user_groups(user.tenant_id, user_id)
    return [SecurityGroupResponse.model_validate(g) for g in groups]


@router.put(
    "/users/{user_id}",
    response_model=List[UserSecurityGroupResponse],
    dependencies=[Depends(require_permissions(Permission.SECURITY_GROUP_UPDATE, Permission.USER_UPDATE))]
)
async def assign_user_groups(user_id: str, data: UserGroupAssignmentRequest, db: DB, user: CurrentUser):
    """Replace the user's security groups. An empty list removes every assignment."""
    assignments = await SecurityGroupService(db).assign_groups_to_user(
        user.tenant_id, user_id, data.security_group_ids, assigned_by=user.user_id
    )
    return [UserSecurityGroupResponse.model_validate(a) for a in assignments]


@router.get(
    "/users/{user_id}/permissions",
    response_model=UserPermissionsResponse,
    dependencies=[Depends(require_permissions(Permission.SECURITY_GROUP_VIEW))]
)
async def get_user_permissions(user_id: str, db: DB, user: CurrentUser):
    permissions = await SecurityGroupService(db).get_user_permissions(user.tenant_id, user_id)
    return UserPermissionsResponse(user_id=user_id, permissions=sorted(permissions))


@router.delete(
    "/users/{user_id}/groups/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.SECURITY_GROUP_UPDATE, Permission.USER_UPDATE))]
)
async def remove_user_from_group(user_id: str, group_id: uuid.UUID, db: DB, user: CurrentUser):
    await SecurityGroupService(db).remove_user_from_group(user.tenant_id, user_id, group_id)


@router.get(
    "/{group_id}",
    response_model=SecurityGroupResponse,
    dependencies=[Depends(require_permissions(Permission.SECURITY_GROUP_VIEW))]
)
async def get_security_group(group_id: uuid.UUID, db: DB, user: CurrentUser):
    group = await SecurityGroupService(db).get_security_group(group_id, user.tenant_id)
    return SecurityGroupResponse.model_validate(group)


@router.patch(
    "/{group_id}",
    response_model=SecurityGroupResponse,
    dependencies=[Depends(require_permissions(Permission.SECURITY_GROUP_UPDATE))]
)
async def update_security_group(group_id: uuid.UUID, data: SecurityGroupUpdate, db: DB, user: CurrentUser):
    group = await SecurityGroupService(db).update_security_group(
        group_id, user.tenant_id, data, updated_by=user.user_id
    )
    return SecurityGroupResponse.model_validate(group)


@router.delete(
    "/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.SECURITY_GROUP_DELETE))]
)
async def delete_security_group(group_id: uuid.UUID, db: DB, user: CurrentUser):
    """Fails while any user is still assigned to the group."""
    await SecurityGroupService(db).delete_security_group(group_id, user.tenant_id)
