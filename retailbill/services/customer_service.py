"""
Customer and supplier master data.

Customers also carry a store wallet and loyalty points:
- every completed purchase earns 1 point per full 100 spent
- 100 points redeem into 1.00 of wallet credit
- the wallet can never go negative
"""
import logging
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.core.exceptions import BusinessError, ValidationError
from retailbill.core.tenant_context import tenant_select, get_for_tenant, get_by_field
from retailbill.db_types import utcnow
from retailbill.models.customer import Customer, Supplier
from retailbill.schemas.customer import CustomerCreate, CustomerUpdate, SupplierCreate, SupplierUpdate
from retailbill.services.gst_service import ensure_valid_gstin

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
POINTS_PER_HUNDRED_SPENT = 1
POINTS_PER_WALLET_UNIT = 100


def loyalty_points_for(amount: Decimal) -> int:
    """Points earned on a purchase of `amount`."""
    if amount is None or amount <= 0:
        return 0
    hundreds = (Decimal(amount) / Decimal("100")).to_integral_value(rounding=ROUND_DOWN)
    return int(hundreds) * POINTS_PER_HUNDRED_SPENT


def ensure_wallet_covers(customer: Customer, amount: Decimal) -> None:
    if (customer.wallet_balance or ZERO) < amount:
        raise BusinessError(
            "Insufficient wallet balance",
            error_code="INSUFFICIENT_WALLET_BALANCE",
            details={"available": str(customer.wallet_balance or ZERO), "requested": str(amount)},
        )


def debit_wallet(customer: Customer, amount: Decimal) -> None:
    ensure_wallet_covers(customer, amount)
    customer.wallet_balance = (customer.wallet_balance or ZERO) - amount


def record_purchase(customer: Customer, amount: Decimal, visited_at: Optional[datetime] = None) -> int:
    """Add a purchase to the customer's totals; returns the points earned."""
    points = loyalty_points_for(amount)
    customer.total_spent = (customer.total_spent or ZERO) + amount
    customer.loyalty_points = (customer.loyalty_points or 0) + points
    customer.visit_count = (customer.visit_count or 0) + 1
    customer.last_visit_at = visited_at or utcnow()
    return points


def _positive(amount: Decimal) -> Decimal:
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be positive", error_code="INVALID_AMOUNT")
    return amount


class CustomerService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _ensure_phone_free(self, tenant_id: uuid.UUID, phone: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        existing = await get_by_field(self.db, Customer, tenant_id, Customer.phone, phone)
        if existing and existing.id != exclude_id:
            raise BusinessError(
                f"Customer with phone {phone} already exists",
                error_code="DUPLICATE_PHONE",
            )

    async def create_customer(self, tenant_id: uuid.UUID, data: CustomerCreate) -> Customer:
        await self._ensure_phone_free(tenant_id, data.phone)

        values = data.model_dump()
        values["gstin"] = ensure_valid_gstin(data.gstin)
        customer = Customer(tenant_id=tenant_id, **values)
        self.db.add(customer)
        await self.db.flush()

        logger.info(f"Created customer {customer.name} ({customer.phone})")
        return customer

    async def update_customer(self, customer_id: uuid.UUID, tenant_id: uuid.UUID, data: CustomerUpdate) -> Customer:
        customer = await self.get_customer(customer_id, tenant_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("phone") and changes["phone"] != customer.phone:
            await self._ensure_phone_free(tenant_id, changes["phone"], exclude_id=customer.id)
        if "gstin" in changes:
            changes["gstin"] = ensure_valid_gstin(changes["gstin"])

        for field, value in changes.items():
            setattr(customer, field, value)
        await self.db.flush()
        return customer

    async def get_customer(self, customer_id: uuid.UUID, tenant_id: uuid.UUID) -> Customer:
        return await get_for_tenant(self.db, Customer, tenant_id, customer_id, "Customer")

    async def get_customer_by_phone(self, tenant_id: uuid.UUID, phone: str) -> Optional[Customer]:
        return await get_by_field(self.db, Customer, tenant_id, Customer.phone, phone)

    async def list_customers(
        self,
        tenant_id: uuid.UUID,
        search: Optional[str] = None,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Customer], int]:
        """Customers matching `search` on name or phone, with the total match count."""
        criteria = []
        if search:
            pattern = f"%{search}%"
            criteria.append(or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
        if active_only:
            criteria.append(Customer.is_active == True)

        total = (await self.db.execute(
            select(func.count(Customer.id)).where(Customer.tenant_id == tenant_id, *criteria)
        )).scalar() or 0

        result = await self.db.execute(
            tenant_select(Customer, tenant_id, *criteria)
            .order_by(Customer.name)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def delete_customer(self, customer_id: uuid.UUID, tenant_id: uuid.UUID) -> Customer:
        """Soft delete; invoices keep referencing the row."""
        customer = await self.get_customer(customer_id, tenant_id)
        customer.is_active = False
        await self.db.flush()
        logger.info(f"Deactivated customer {customer.id}")
        return customer

    # ==================== Wallet & loyalty ====================

    async def _lock_customer(self, customer_id: uuid.UUID, tenant_id: uuid.UUID) -> Customer:
        return await get_for_tenant(self.db, Customer, tenant_id, customer_id, "Customer", for_update=True)

    async def record_purchase(
        self,
        customer_id: uuid.UUID,
        tenant_id: uuid.UUID,
        amount: Decimal,
        visited_at: Optional[datetime] = None,
    ) -> Customer:
        customer = await self._lock_customer(customer_id, tenant_id)
        points = record_purchase(customer, amount, visited_at)
        await self.db.flush()
        logger.info(
            f"Customer {customer.id} earned {points} loyalty points. New total: {customer.loyalty_points}"
        )
        return customer

    async def add_to_wallet(self, customer_id: uuid.UUID, tenant_id: uuid.UUID, amount: Decimal) -> Customer:
        _positive(amount)
        customer = await self._lock_customer(customer_id, tenant_id)
        customer.wallet_balance = (customer.wallet_balance or ZERO) + amount
        await self.db.flush()
        logger.info(f"Added {amount} to wallet of customer {customer.id}")
        return customer

    async def deduct_from_wallet(self, customer_id: uuid.UUID, tenant_id: uuid.UUID, amount: Decimal) -> Customer:
        _positive(amount)
        customer = await self._lock_customer(customer_id, tenant_id)
        debit_wallet(customer, amount)
        await self.db.flush()
        logger.info(f"Deducted {amount} from wallet of customer {customer.id}")
        return customer

    async def redeem_loyalty_points(self, customer_id: uuid.UUID, tenant_id: uuid.UUID, points: int) -> Customer:
        """Convert `points` into wallet credit."""
        if points is None or points <= 0:
            raise ValidationError("Points must be positive", error_code="INVALID_POINTS")
        customer = await self._lock_customer(customer_id, tenant_id)
        if (customer.loyalty_points or 0) < points:
            raise BusinessError(
                "Insufficient loyalty points",
                error_code="INSUFFICIENT_LOYALTY_POINTS",
                details={"available": customer.loyalty_points or 0, "requested": points},
            )

        credit = (Decimal(points) / Decimal(POINTS_PER_WALLET_UNIT)).quantize(Decimal("0.01"))
        customer.loyalty_points = customer.loyalty_points - points
        customer.wallet_balance = (customer.wallet_balance or ZERO) + credit
        await self.db.flush()
        logger.info(f"Redeemed {points} points to {credit} wallet credit for customer {customer.id}")
        return customer


class SupplierService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_supplier(self, tenant_id: uuid.UUID, data: SupplierCreate) -> Supplier:
        values = data.model_dump()
        values["gstin"] = ensure_valid_gstin(data.gstin)
        supplier = Supplier(tenant_id=tenant_id, **values)
        self.db.add(supplier)
        await self.db.flush()
        logger.info(f"Created supplier {supplier.name}")
        return supplier

    async def update_supplier(self, supplier_id: uuid.UUID, tenant_id: uuid.UUID, data: SupplierUpdate) -> Supplier:
        supplier = await self.get_supplier(supplier_id, tenant_id)
        changes = data.model_dump(exclude_unset=True)
        if "gstin" in changes:
            changes["gstin"] = ensure_valid_gstin(changes["gstin"])
        for field, value in changes.items():
            setattr(supplier, field, value)
        await self.db.flush()
        return supplier

    async def get_supplier(self, supplier_id: uuid.UUID, tenant_id: uuid.UUID) -> Supplier:
        return await get_for_tenant(self.db, Supplier, tenant_id, supplier_id, "Supplier")

    async def list_suppliers(
        self,
        tenant_id: uuid.UUID,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Supplier]:
        stmt = tenant_select(Supplier, tenant_id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(
                Supplier.name.ilike(pattern),
                Supplier.phone.ilike(pattern),
                Supplier.contact_person.ilike(pattern),
            ))
        result = await self.db.execute(stmt.order_by(Supplier.name).offset(skip).limit(limit))
        return list(result.scalars().all())

    async def delete_supplier(self, supplier_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        supplier = await self.get_supplier(supplier_id, tenant_id)
        await self.db.delete(supplier)
        await self.db.flush()
        logger.info(f"Deleted supplier {supplier_id}")
