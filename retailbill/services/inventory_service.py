"""
Inventory Service

Stock is kept per (product, location). Every change writes a StockMovement
row with the before/after quantities. Quantity changes are issued as
conditional UPDATE statements so two concurrent sales of the last unit
cannot both succeed.

Invoice-driven operations (check_availability, deduct_stock, reverse_stock)
are advisory: callers treat their failures as non-fatal.
"""
import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.core.exceptions import BusinessError, NotFoundError, ValidationError
from retailbill.core.tenant_context import tenant_select, get_for_tenant
from retailbill.models.inventory import (
    Product, Stock, StockMovement, MovementType, AdjustmentType,
)
from retailbill.schemas.inventory import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)


class InventoryService:
    """Products, stock levels and movements for a tenant."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Products ====================

    async def create_product(self, tenant_id: uuid.UUID, data: ProductCreate) -> Product:
        existing = await self.db.execute(
            tenant_select(Product, tenant_id, Product.sku == data.sku)
        )
        if existing.scalar_one_or_none():
            raise BusinessError(f"Product with SKU {data.sku} already exists", error_code="DUPLICATE_SKU")

        product = Product(tenant_id=tenant_id, **data.model_dump())
        self.db.add(product)
        await self.db.flush()
        return product

    async def update_product(self, product_id: uuid.UUID, tenant_id: uuid.UUID, data: ProductUpdate) -> Product:
        product = await self.get_product(product_id, tenant_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(product, field, value)
        await self.db.flush()
        return product

    async def get_product(self, product_id: uuid.UUID, tenant_id: uuid.UUID) -> Product:
        return await get_for_tenant(self.db, Product, tenant_id, product_id, "Product")

    async def list_products(
        self,
        tenant_id: uuid.UUID,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Product]:
        stmt = tenant_select(Product, tenant_id, Product.is_active == True)
        if search:
            stmt = stmt.where(Product.name.ilike(f"%{search}%") | Product.sku.ilike(f"%{search}%"))
        result = await self.db.execute(stmt.order_by(Product.name).offset(skip).limit(limit))
        return list(result.scalars().all())

    # ==================== Stock ====================

    async def _get_stock(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        location_id: str,
    ) -> Optional[Stock]:
        result = await self.db.execute(
            tenant_select(
                Stock, tenant_id,
                Stock.product_id == product_id,
                Stock.location_id == location_id,
            )
        )
        return result.scalar_one_or_none()

    async def _get_or_create_stock(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        location_id: str,
    ) -> Stock:
        stock = await self._get_stock(tenant_id, product_id, location_id)
        if stock is None:
            await self.get_product(product_id, tenant_id)
            stock = Stock(
                tenant_id=tenant_id,
                product_id=product_id,
                location_id=location_id,
                quantity=0,
                reserved_quantity=0,
            )
            self.db.add(stock)
            await self.db.flush()
        return stock

    async def get_stock(self, tenant_id: uuid.UUID, product_id: uuid.UUID, location_id: str) -> Stock:
        stock = await self._get_stock(tenant_id, product_id, location_id)
        if stock is None:
            raise NotFoundError(
                f"No stock for product {product_id} at location {location_id}",
                error_code="STOCK_NOT_FOUND",
            )
        return stock

    async def get_stock_levels(
        self,
        tenant_id: uuid.UUID,
        location_id: Optional[str] = None,
        product_id: Optional[uuid.UUID] = None,
    ) -> List[Stock]:
        stmt = tenant_select(Stock, tenant_id)
        if location_id:
            stmt = stmt.where(Stock.location_id == location_id)
        if product_id:
            stmt = stmt.where(Stock.product_id == product_id)
        result = await self.db.execute(stmt.order_by(Stock.location_id))
        return list(result.scalars().all())

    async def get_low_stock(self, tenant_id: uuid.UUID, location_id: Optional[str] = None) -> List[Stock]:
        stmt = (
            tenant_select(Stock, tenant_id)
            .join(Product, Product.id == Stock.product_id)
            .where(Stock.quantity <= Product.reorder_level, Product.is_active == True)
        )
        if location_id:
            stmt = stmt.where(Stock.location_id == location_id)
        result = await self.db.execute(stmt.order_by(Stock.quantity))
        return list(result.scalars().all())

    async def record_movement(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        location_id: str,
        movement_type: MovementType,
        quantity: int,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        notes: Optional[str] = None,
        performed_by: Optional[str] = None,
    ) -> StockMovement:
        """
        Apply a signed stock change and log it.

        IN adds `quantity`; OUT removes it and fails with "Insufficient stock"
        when not enough is on hand. ADJUSTMENT and TRANSFER carry a signed
        quantity.
        """
        if movement_type in (MovementType.IN, MovementType.OUT) and quantity <= 0:
            raise ValidationError("Quantity must be positive")

        delta = -quantity if movement_type == MovementType.OUT else quantity
        stock = await self._get_or_create_stock(tenant_id, product_id, location_id)

        guard = [Stock.id == stock.id]
        if delta < 0:
            guard.append(Stock.quantity >= -delta)

        result = await self.db.execute(
            update(Stock)
            .where(*guard)
            .values(quantity=Stock.quantity + delta)
            .returning(Stock.quantity)
            .execution_options(synchronize_session=False)
        )
        new_quantity = result.scalar_one_or_none()
        if new_quantity is None:
            raise ValidationError(
                "Insufficient stock",
                error_code="INSUFFICIENT_STOCK",
                details={"product_id": str(product_id), "location_id": location_id, "requested": quantity},
            )
        await self.db.refresh(stock)

        movement = StockMovement(
            tenant_id=tenant_id,
            product_id=product_id,
            location_id=location_id,
            movement_type=movement_type.value,
            quantity=quantity,
            previous_quantity=new_quantity - delta,
            new_quantity=new_quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            performed_by=performed_by,
        )
        self.db.add(movement)
        await self.db.flush()
        return movement

    async def check_availability(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        location_id: str,
        quantity: int,
    ) -> bool:
        """True when enough unreserved stock exists. Lookup errors count as available."""
        try:
            stock = await self._get_stock(tenant_id, product_id, location_id)
            if stock is None:
                return False
            return stock.available_quantity >= quantity
        except Exception as e:
            logger.error(f"Error checking stock availability for product {product_id}: {e}")
            return True

    async def deduct_stock(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        location_id: str,
        quantity: int,
        reference_id: str,
        performed_by: Optional[str] = None,
    ) -> StockMovement:
        return await self.record_movement(
            tenant_id, product_id, location_id, MovementType.OUT, quantity,
            reference_type="INVOICE",
            reference_id=reference_id,
            notes=f"Sale: {reference_id}",
            performed_by=performed_by,
        )

    async def reverse_stock(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        location_id: str,
        quantity: int,
        reference_id: str,
        performed_by: Optional[str] = None,
    ) -> StockMovement:
        return await self.record_movement(
            tenant_id, product_id, location_id, MovementType.IN, quantity,
            reference_type="INVOICE",
            reference_id=reference_id,
            notes=f"Reversal: {reference_id}",
            performed_by=performed_by,
        )

    async def adjust_stock(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        location_id: str,
        adjustment_type: AdjustmentType,
        quantity: int,
        reason: Optional[str] = None,
        reference_type: str = "ADJUSTMENT",
        reference_id: Optional[str] = None,
        performed_by: Optional[str] = None,
    ) -> StockMovement:
        if quantity < 0:
            raise ValidationError("Adjustment quantity cannot be negative")

        if adjustment_type == AdjustmentType.INCREASE:
            delta = quantity
        elif adjustment_type == AdjustmentType.DECREASE:
            delta = -quantity
        else:
            stock = await self._get_or_create_stock(tenant_id, product_id, location_id)
            delta = quantity - stock.quantity

        if delta == 0:
            stock = await self._get_or_create_stock(tenant_id, product_id, location_id)
            movement = StockMovement(
                tenant_id=tenant_id,
                product_id=product_id,
                location_id=location_id,
                movement_type=MovementType.ADJUSTMENT.value,
                quantity=0,
                previous_quantity=stock.quantity,
                new_quantity=stock.quantity,
                reference_type=reference_type,
                reference_id=reference_id,
                notes=reason,
                performed_by=performed_by,
            )
            self.db.add(movement)
            await self.db.flush()
            return movement

        if delta < 0:
            movement = await self.record_movement(
                tenant_id, product_id, location_id, MovementType.OUT, -delta,
                reference_type=reference_type, reference_id=reference_id,
                notes=reason, performed_by=performed_by,
            )
        else:
            movement = await self.record_movement(
                tenant_id, product_id, location_id, MovementType.IN, delta,
                reference_type=reference_type, reference_id=reference_id,
                notes=reason, performed_by=performed_by,
            )
        movement.movement_type = MovementType.ADJUSTMENT.value
        await self.db.flush()
        logger.info(
            f"Adjusted stock of {product_id} at {location_id} ({adjustment_type.value} {quantity}): "
            f"{movement.previous_quantity} -> {movement.new_quantity}"
        )
        return movement

    async def transfer_stock(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        from_location: str,
        to_location: str,
        quantity: int,
        performed_by: Optional[str] = None,
    ) -> List[StockMovement]:
        if from_location == to_location:
            raise ValidationError("Source and destination locations must differ")

        reference = f"TRF-{uuid.uuid4().hex[:8].upper()}"
        outgoing = await self.record_movement(
            tenant_id, product_id, from_location, MovementType.OUT, quantity,
            reference_type="TRANSFER", reference_id=reference,
            notes=f"Transfer to {to_location}", performed_by=performed_by,
        )
        incoming = await self.record_movement(
            tenant_id, product_id, to_location, MovementType.IN, quantity,
            reference_type="TRANSFER", reference_id=reference,
            notes=f"Transfer from {from_location}", performed_by=performed_by,
        )
        outgoing.movement_type = MovementType.TRANSFER.value
        incoming.movement_type = MovementType.TRANSFER.value
        await self.db.flush()
        return [outgoing, incoming]

    async def get_movements(
        self,
        tenant_id: uuid.UUID,
        product_id: Optional[uuid.UUID] = None,
        location_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[StockMovement]:
        stmt = tenant_select(StockMovement, tenant_id)
        if product_id:
            stmt = stmt.where(StockMovement.product_id == product_id)
        if location_id:
            stmt = stmt.where(StockMovement.location_id == location_id)
        if reference_id:
            stmt = stmt.where(StockMovement.reference_id == reference_id)
        result = await self.db.execute(
            stmt.order_by(StockMovement.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())
