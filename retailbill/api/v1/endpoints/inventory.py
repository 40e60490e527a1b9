from typing import Optional, List
import uuid

from fastapi import APIRouter, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.permissions import Permission
from retailbill.models.inventory import MovementType
from retailbill.schemas.inventory import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    StockResponse,
    StockMovementResponse,
    StockReceiveRequest,
    StockAdjustmentRequest,
    StockTransferRequest,
    AvailabilityResponse,
)
from retailbill.services.inventory_service import InventoryService


router = APIRouter(tags=["Inventory"])


# ==================== Products ====================

@router.post(
    "/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.PRODUCT_CREATE))]
)
async def create_product(data: ProductCreate, db: DB, user: CurrentUser):
    product = await InventoryService(db).create_product(user.tenant_id, data)
    return ProductResponse.model_validate(product)


@router.get(
    "/products",
    response_model=List[ProductResponse],
    dependencies=[Depends(require_permissions(Permission.PRODUCT_VIEW))]
)
async def list_products(
    db: DB,
    user: CurrentUser,
    search: Optional[str] = Query(None, description="Match on name or SKU"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    products = await InventoryService(db).list_products(user.tenant_id, search=search, skip=skip, limit=limit)
    return [ProductResponse.model_validate(p) for p in products]


@router.get(
    "/products/{product_id}",
    response_model=ProductResponse,
    dependencies=[Depends(require_permissions(Permission.PRODUCT_VIEW))]
)
async def get_product(product_id: uuid.UUID, db: DB, user: CurrentUser):
    product = await InventoryService(db).get_product(product_id, user.tenant_id)
    return ProductResponse.model_validate(product)


@router.patch(
    "/products/{product_id}",
    response_model=ProductResponse,
    dependencies=[Depends(require_permissions(Permission.PRODUCT_UPDATE))]
)
async def update_product(product_id: uuid.UUID, data: ProductUpdate, db: DB, user: CurrentUser):
    product = await InventoryService(db).update_product(product_id, user.tenant_id, data)
    return ProductResponse.model_validate(product)


# ==================== Stock ====================

@router.get(
    "/stock",
    response_model=List[StockResponse],
    dependencies=[Depends(require_permissions(Permission.INVENTORY_VIEW))]
)
async def get_stock_levels(
    db: DB,
    user: CurrentUser,
    location_id: Optional[str] = Query(None),
    product_id: Optional[uuid.UUID] = Query(None),
):
    stocks = await InventoryService(db).get_stock_levels(
        user.tenant_id, location_id=location_id, product_id=product_id
    )
    return [StockResponse.model_validate(s) for s in stocks]


@router.get(
    "/stock/low",
    response_model=List[StockResponse],
    dependencies=[Depends(require_permissions(Permission.INVENTORY_VIEW))]
)
async def get_low_stock(db: DB, user: CurrentUser, location_id: Optional[str] = Query(None)):
    """Stock rows at or below the product's reorder level."""
    stocks = await InventoryService(db).get_low_stock(user.tenant_id, location_id=location_id)
    return [StockResponse.model_validate(s) for s in stocks]


@router.get(
    "/stock/{product_id}/{location_id}",
    response_model=StockResponse,
    dependencies=[Depends(require_permissions(Permission.INVENTORY_VIEW))]
)
async def get_stock(product_id: uuid.UUID, location_id: str, db: DB, user: CurrentUser):
    stock = await InventoryService(db).get_stock(user.tenant_id, product_id, location_id)
    return StockResponse.model_validate(stock)


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    dependencies=[Depends(require_permissions(Permission.INVENTORY_VIEW))]
)
async def check_availability(
    db: DB,
    user: CurrentUser,
    product_id: uuid.UUID = Query(...),
    location_id: str = Query(...),
    quantity: int = Query(..., gt=0),
):
    available = await InventoryService(db).check_availability(user.tenant_id, product_id, location_id, quantity)
    return AvailabilityResponse(
        product_id=product_id, location_id=location_id, quantity=quantity, available=available
    )


@router.post(
    "/stock/receive",
    response_model=StockMovementResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.INVENTORY_UPDATE))]
)
async def receive_stock(data: StockReceiveRequest, db: DB, user: CurrentUser):
    """Goods received into a location."""
    service = InventoryService(db)
    await service.get_product(data.product_id, user.tenant_id)
    movement = await service.record_movement(
        user.tenant_id,
        data.product_id,
        data.location_id,
        MovementType.IN,
        data.quantity,
        reference_type="RECEIPT",
        reference_id=data.reference_id,
        notes=data.notes,
        performed_by=user.user_id,
    )
    return StockMovementResponse.model_validate(movement)


@router.post(
    "/stock/adjust",
    response_model=StockMovementResponse,
    dependencies=[Depends(require_permissions(Permission.STOCK_ADJUSTMENT))]
)
async def adjust_stock(data: StockAdjustmentRequest, db: DB, user: CurrentUser):
    movement = await InventoryService(db).adjust_stock(
        user.tenant_id,
        data.product_id,
        data.location_id,
        data.adjustment_type,
        data.quantity,
        reason=data.reason,
        performed_by=user.user_id,
    )
    return StockMovementResponse.model_validate(movement)


@router.post(
    "/stock/transfer",
    response_model=List[StockMovementResponse],
    dependencies=[Depends(require_permissions(Permission.INVENTORY_UPDATE))]
)
async def transfer_stock(data: StockTransferRequest, db: DB, user: CurrentUser):
    """Move stock between locations. Returns the outgoing and incoming movements."""
    movements = await InventoryService(db).transfer_stock(
        user.tenant_id,
        data.product_id,
        data.from_location,
        data.to_location,
        data.quantity,
        performed_by=user.user_id,
    )
    return [StockMovementResponse.model_validate(m) for m in movements]


@router.get(
    "/movements",
    response_model=List[StockMovementResponse],
    dependencies=[Depends(require_permissions(Permission.INVENTORY_VIEW))]
)
async def get_movements(
    db: DB,
    user: CurrentUser,
    product_id: Optional[uuid.UUID] = Query(None),
    location_id: Optional[str] = Query(None),
    reference_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    movements = await InventoryService(db).get_movements(
        user.tenant_id,
        product_id=product_id,
        location_id=location_id,
        reference_id=reference_id,
        skip=skip,
        limit=limit,
    )
    return [StockMovementResponse.model_validate(m) for m in movements]
