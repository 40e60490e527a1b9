from typing import Optional, List
from decimal import Decimal
import uuid

from fastapi import APIRouter, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.models.offer import OfferStatus
from retailbill.schemas.offer import (
    OfferCreate,
    OfferUpdate,
    OfferResponse,
    DiscountRequest,
    DiscountResponse,
    BestCombinationResponse,
)
from retailbill.services.offer_service import OfferService


router = APIRouter(tags=["Offers"])


@router.post(
    "",
    response_model=OfferResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.OFFER_CREATE))]
)
async def create_offer(data: OfferCreate, db: DB, user: CurrentUser):
    offer = await OfferService(db).create_offer(user.tenant_id, user.user_id, data)
    return OfferResponse.model_validate(offer)


@router.get(
    "",
    response_model=List[OfferResponse],
    dependencies=[Depends(require_permissions(Permission.OFFER_VIEW))]
)
async def list_offers(
    db: DB,
    user: CurrentUser,
    status: Optional[OfferStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    offers = await OfferService(db).list_offers(user.tenant_id, status=status, skip=skip, limit=limit)
    return [OfferResponse.model_validate(o) for o in offers]


@router.get(
    "/active",
    response_model=List[OfferResponse],
    dependencies=[Depends(require_permissions(Permission.OFFER_VIEW))]
)
async def list_active_offers(db: DB, user: CurrentUser):
    """ACTIVE offers whose validity window contains now."""
    offers = await OfferService(db).list_active_offers(user.tenant_id)
    return [OfferResponse.model_validate(o) for o in offers]


@router.post(
    "/applicable",
    response_model=List[OfferResponse],
    dependencies=[Depends(require_permissions(Permission.OFFER_VIEW))]
)
async def get_applicable_offers(data: DiscountRequest, db: DB, user: CurrentUser):
    offers = await OfferService(db).get_applicable_offers(
        user.tenant_id, data.purchase_amount, data.product_ids, data.category_ids
    )
    return [OfferResponse.model_validate(o) for o in offers]


@router.post(
    "/best-combination",
    response_model=BestCombinationResponse,
    dependencies=[Depends(require_permissions(Permission.OFFER_VIEW))]
)
async def get_best_offer_combination(data: DiscountRequest, db: DB, user: CurrentUser):
    """
    Best set of offers for a basket.

    Either the single best non-stackable offer, or all applicable stackable
    offers, whichever gives the larger total discount.
    """
    offers = await OfferService(db).get_best_offer_combination(
        user.tenant_id, data.purchase_amount, data.product_ids, data.category_ids
    )
    total = sum((o.discount_amount for o in offers), Decimal("0"))
    return BestCombinationResponse(offers=offers, total_discount=total)


@router.get(
    "/{offer_id}",
    response_model=OfferResponse,
    dependencies=[Depends(require_permissions(Permission.OFFER_VIEW))]
)
async def get_offer(offer_id: uuid.UUID, db: DB, user: CurrentUser):
    offer = await OfferService(db).get_offer(offer_id, user.tenant_id)
    return OfferResponse.model_validate(offer)


@router.patch(
    "/{offer_id}",
    response_model=OfferResponse,
    dependencies=[Depends(require_permissions(Permission.OFFER_UPDATE))]
)
async def update_offer(offer_id: uuid.UUID, data: OfferUpdate, db: DB, user: CurrentUser):
    offer = await OfferService(db).update_offer(offer_id, user.tenant_id, data)
    return OfferResponse.model_validate(offer)


@router.delete(
    "/{offer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.OFFER_DELETE))]
)
async def delete_offer(offer_id: uuid.UUID, db: DB, user: CurrentUser):
    await OfferService(db).delete_offer(offer_id, user.tenant_id)


@router.post(
    "/{offer_id}/activate",
    response_model=OfferResponse,
    dependencies=[Depends(require_permissions(Permission.OFFER_UPDATE))]
)
async def activate_offer(offer_id: uuid.UUID, db: DB, user: CurrentUser):
    offer = await OfferService(db).activate_offer(offer_id, user.tenant_id)
    return OfferResponse.model_validate(offer)


@router.post(
    "/{offer_id}/pause",
    response_model=OfferResponse,
    dependencies=[Depends(require_permissions(Permission.OFFER_UPDATE))]
)
async def pause_offer(offer_id: uuid.UUID, db: DB, user: CurrentUser):
    offer = await OfferService(db).pause_offer(offer_id, user.tenant_id)
    return OfferResponse.model_validate(offer)


@router.post(
    "/{offer_id}/calculate",
    response_model=DiscountResponse,
    dependencies=[Depends(require_permissions(Permission.OFFER_VIEW))]
)
async def calculate_discount(offer_id: uuid.UUID, data: DiscountRequest, db: DB, user: CurrentUser):
    """Discount the offer would give, without consuming a use."""
    discount = await OfferService(db).calculate_discount(
        offer_id, user.tenant_id, data.purchase_amount, data.product_ids, data.category_ids
    )
    return DiscountResponse(offer_id=offer_id, purchase_amount=data.purchase_amount, discount_amount=discount)


@router.post(
    "/{offer_id}/apply",
    response_model=DiscountResponse,
    dependencies=[Depends(require_permissions(Permission.INVOICE_CREATE))]
)
async def apply_offer(offer_id: uuid.UUID, data: DiscountRequest, db: DB, user: CurrentUser):
    discount = await OfferService(db).apply_offer(
        offer_id, user.tenant_id, data.purchase_amount, data.product_ids, data.category_ids
    )
    return DiscountResponse(offer_id=offer_id, purchase_amount=data.purchase_amount, discount_amount=discount)
