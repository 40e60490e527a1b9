from typing import List
import uuid

from fastapi import APIRouter, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.schemas.gst import (
    GstRateCreate,
    GstRateUpdate,
    GstRateResponse,
    GstCalculationRequest,
    GstCategoryCalculationRequest,
    GstCalculationResponse,
    GstinValidationResponse,
)
from retailbill.services.gst_service import (
    GstService,
    GST_STATE_CODES,
    validate_gstin,
)


router = APIRouter(tags=["GST"])


@router.post(
    "/calculate",
    response_model=GstCalculationResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def calculate_gst(data: GstCalculationRequest, db: DB, user: CurrentUser):
    """
    Tax for an HSN or SAC code.

    Same supplier and customer state gives CGST + SGST, otherwise IGST.
    """
    return await GstService(db).calculate(
        data.code, data.amount, data.supplier_state, data.customer_state, user.tenant_id
    )


@router.post(
    "/calculate/category",
    response_model=GstCalculationResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_VIEW))]
)
async def calculate_gst_by_category(data: GstCategoryCalculationRequest, db: DB, user: CurrentUser):
    return await GstService(db).calculate_by_category(
        data.tax_category, data.amount, data.is_interstate, user.tenant_id
    )


@router.get("/gstin/{gstin}/validate", response_model=GstinValidationResponse)
async def validate_gstin_number(gstin: str, user: CurrentUser):
    gstin = gstin.strip().upper()
    if not validate_gstin(gstin):
        return GstinValidationResponse(gstin=gstin, is_valid=False)
    state_code = gstin[0:2]
    return GstinValidationResponse(
        gstin=gstin,
        is_valid=True,
        state_code=state_code,
        state_name=GST_STATE_CODES.get(state_code),
        pan=gstin[2:12],
    )


# ==================== Rate master ====================

@router.get(
    "/rates",
    response_model=List[GstRateResponse],
    dependencies=[Depends(require_permissions(Permission.SETTINGS_VIEW))]
)
async def list_gst_rates(
    db: DB,
    user: CurrentUser,
    include_inactive: bool = Query(False),
):
    """Global rates plus the tenant's own overrides."""
    rates = await GstService(db).list_rates(user.tenant_id, include_inactive=include_inactive)
    return [GstRateResponse.model_validate(r) for r in rates]


@router.post(
    "/rates",
    response_model=GstRateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def create_gst_rate(data: GstRateCreate, db: DB, user: CurrentUser):
    rate = await GstService(db).create_rate(user.tenant_id, data)
    return GstRateResponse.model_validate(rate)


@router.get(
    "/rates/{rate_id}",
    response_model=GstRateResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_VIEW))]
)
async def get_gst_rate(rate_id: uuid.UUID, db: DB, user: CurrentUser):
    rate = await GstService(db).get_rate(rate_id, user.tenant_id)
    return GstRateResponse.model_validate(rate)


@router.patch(
    "/rates/{rate_id}",
    response_model=GstRateResponse,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def update_gst_rate(rate_id: uuid.UUID, data: GstRateUpdate, db: DB, user: CurrentUser):
    rate = await GstService(db).update_rate(rate_id, user.tenant_id, data)
    return GstRateResponse.model_validate(rate)


@router.delete(
    "/rates/{rate_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.SETTINGS_UPDATE))]
)
async def delete_gst_rate(rate_id: uuid.UUID, db: DB, user: CurrentUser):
    await GstService(db).delete_rate(rate_id, user.tenant_id)
