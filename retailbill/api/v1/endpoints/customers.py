from typing import Optional, List
import uuid

from fastapi import APIRouter, Depends, Query, status

from retailbill.api.deps import DB, CurrentUser, require_permissions
from retailbill.core.exceptions import NotFoundError
from retailbill.core.permissions import Permission
from retailbill.schemas.base import ListResponse
from retailbill.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    LoyaltyRedeemRequest,
    SupplierCreate,
    SupplierUpdate,
    SupplierResponse,
    WalletAmountRequest,
)
from retailbill.services.customer_service import CustomerService, SupplierService


router = APIRouter(tags=["Customers"])
supplier_router = APIRouter(tags=["Suppliers"])


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.CUSTOMER_CREATE))]
)
async def create_customer(data: CustomerCreate, db: DB, user: CurrentUser):
    """Phone numbers are unique within a tenant."""
    customer = await CustomerService(db).create_customer(user.tenant_id, data)
    return CustomerResponse.model_validate(customer)


@router.get(
    "",
    response_model=ListResponse[CustomerResponse],
    dependencies=[Depends(require_permissions(Permission.CUSTOMER_VIEW))]
)
async def list_customers(
    db: DB,
    user: CurrentUser,
    search: Optional[str] = Query(None, description="Match on name or phone"),
    active_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    customers, total = await CustomerService(db).list_customers(
        user.tenant_id, search=search, active_only=active_only, skip=skip, limit=limit
    )
    return ListResponse[CustomerResponse](
        items=[CustomerResponse.model_validate(c) for c in customers],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/phone/{phone}",
    response_model=CustomerResponse,
    dependencies=[Depends(require_permissions(Permission.CUSTOMER_VIEW))]
)
async def get_customer_by_phone(phone: str, db: DB, user: CurrentUser):
    customer = await CustomerService(db).get_customer_by_phone(user.tenant_id, phone)
    if customer is None:
        raise NotFoundError(f"Customer not found for phone: {phone}")
    return CustomerResponse.model_validate(customer)


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    dependencies=[Depends(require_permissions(Permission.CUSTOMER_VIEW))]
)
async def get_customer(customer_id: uuid.UUID, db: DB, user: CurrentUser):
    customer = await CustomerService(db).get_customer(customer_id, user.tenant_id)
    return CustomerResponse.model_validate(customer)


@router.patch(
    "/{customer_id}",
    response_model=CustomerResponse,
    dependencies=[Depends(require_permissions(Permission.CUSTOMER_UPDATE))]
)
async def update_customer(customer_id: uuid.UUID, data: CustomerUpdate, db: DB, user: CurrentUser):
    customer = await CustomerService(db).update_customer(customer_id, user.tenant_id, data)
    return CustomerResponse.model_validate(customer)


@router.delete(
    "/{customer_id}",
    response_model=CustomerResponse,
    dependencies=[Depends(require_permissions(Permission.CUSTOMER_DELETE))]
)
async def delete_customer(customer_id: uuid.UUID, db: DB, user: CurrentUser):
    """Deactivates the customer; past invoices keep their reference."""
    customer = await CustomerService(db).delete_customer(customer_id, user.tenant_id)
    return CustomerResponse.model_validate(customer)


@router.post(
    "/{customer_id}/wallet/add",
    response_model=CustomerResponse,
    dependencies=[Depends(require_permissions(Permission.CUSTOMER_UPDATE))]
)
async def add_to_wallet(customer_id: uuid.UUID, data: WalletAmountRequest, db: DB, user: CurrentUser):
    customer = await CustomerService(db).add_to_wallet(customer_id, user.tenant_id, data.amount)
    return CustomerResponse.model_validate(customer)


@router.post(
    "/{customer_id}/wallet/deduct",
    response_model=CustomerResponse,
    dependencies=[Depends(require_permissions(Permission.CUSTOMER_UPDATE))]
)
async def deduct_from_wallet(customer_id: uuid.UUID, data: WalletAmountRequest, db: DB, user: CurrentUser):
    """Fails with 422 when the wallet cannot cover the amount."""
    customer = await CustomerService(db).deduct_from_wallet(customer_id, user.tenant_id, data.amount)
    return CustomerResponse.model_validate(customer)


@router.post(
    "/{customer_id}/loyalty/redeem",
    response_model=CustomerResponse,
    dependencies=[Depends(require_permissions(Permission.CUSTOMER_UPDATE))]
)
async def redeem_loyalty_points(customer_id: uuid.UUID, data: LoyaltyRedeemRequest, db: DB, user: CurrentUser):
    customer = await CustomerService(db).redeem_loyalty_points(customer_id, user.tenant_id, data.points)
    return CustomerResponse.model_validate(customer)


# ==================== Suppliers ====================

@supplier_router.post(
    "",
    response_model=SupplierResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions(Permission.SUPPLIER_CREATE))]
)
async def create_supplier(data: SupplierCreate, db: DB, user: CurrentUser):
    supplier = await SupplierService(db).create_supplier(user.tenant_id, data)
    return SupplierResponse.model_validate(supplier)


@supplier_router.get(
    "",
    response_model=List[SupplierResponse],
    dependencies=[Depends(require_permissions(Permission.SUPPLIER_VIEW))]
)
async def list_suppliers(
    db: DB,
    user: CurrentUser,
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    suppliers = await SupplierService(db).list_suppliers(user.tenant_id, search=search, skip=skip, limit=limit)
    return [SupplierResponse.model_validate(s) for s in suppliers]


@supplier_router.get(
    "/{supplier_id}",
    response_model=SupplierResponse,
    dependencies=[Depends(require_permissions(Permission.SUPPLIER_VIEW))]
)
async def get_supplier(supplier_id: uuid.UUID, db: DB, user: CurrentUser):
    supplier = await SupplierService(db).get_supplier(supplier_id, user.tenant_id)
    return SupplierResponse.model_validate(supplier)


@supplier_router.patch(
    "/{supplier_id}",
    response_model=SupplierResponse,
    dependencies=[Depends(require_permissions(Permission.SUPPLIER_UPDATE))]
)
async def update_supplier(supplier_id: uuid.UUID, data: SupplierUpdate, db: DB, user: CurrentUser):
    supplier = await SupplierService(db).update_supplier(supplier_id, user.tenant_id, data)
    return SupplierResponse.model_validate(supplier)


@supplier_router.delete(
    "/{supplier_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_permissions(Permission.SUPPLIER_DELETE))]
)
async def delete_supplier(supplier_id: uuid.UUID, db: DB, user: CurrentUser):
    await SupplierService(db).delete_supplier(supplier_id, user.tenant_id)
