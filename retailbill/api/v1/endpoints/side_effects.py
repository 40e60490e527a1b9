from typing import Optional, List

from fastapi import APIRouter, Depends, Query

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.models.side_effect import SideEffectStatus
from retailbill.schemas.side_effect import PendingSideEffectResponse, SideEffectRetryResponse
from retailbill.services.side_effect_service import SideEffectService


router = APIRouter(tags=["Side Effects"])


@router.get(
    "",
    response_model=List[PendingSideEffectResponse],
    dependencies=[Depends(require_permissions(Permission.INVENTORY_VIEW))]
)
async def list_side_effects(
    db: DB,
    user: CurrentUser,
    status: Optional[SideEffectStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """Stock changes that failed inline, with their retry state."""
    effects = await SideEffectService(db).list_effects(user.tenant_id, status=status, skip=skip, limit=limit)
    return [PendingSideEffectResponse.model_validate(e) for e in effects]


@router.post(
    "/retry",
    response_model=SideEffectRetryResponse,
    dependencies=[Depends(require_permissions(Permission.INVENTORY_UPDATE))]
)
async def retry_side_effects(db: DB, user: CurrentUser):
    stats = await SideEffectService(db).retry_pending(user.tenant_id)
    return SideEffectRetryResponse(**stats)
