"""
Offer / Discount Resolver

Given a purchase amount and the products/categories in a basket, decides
which offers apply and how much discount each yields.

Discount rules:
- PERCENTAGE_DISCOUNT: amount x value / 100 (half-up, 2 decimals)
- FIXED_AMOUNT_DISCOUNT: value
- MINIMUM_PURCHASE: value once the minimum purchase amount is met
- maximum_discount_amount caps every type

When quoting, an invalid offer (not ACTIVE, or outside its validity window)
yields zero rather than an error. Applying one is refused before any usage
is consumed.
"""
import logging
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.core.exceptions import BusinessError, ValidationError
from retailbill.core.tenant_context import tenant_select, get_for_tenant
from retailbill.db_types import utcnow
from retailbill.models.offer import Offer, OfferStatus, OfferType
from retailbill.schemas.offer import OfferCreate, OfferUpdate, OfferEvaluation

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


def _ids(values: Optional[Iterable]) -> set:
    return {str(v) for v in (values or [])}


def is_offer_applicable(
    offer: Offer,
    product_ids: Optional[Sequence] = None,
    category_ids: Optional[Sequence] = None,
) -> bool:
    """Universal when the offer lists no products or categories, otherwise any overlap."""
    allowed_products = _ids(offer.applicable_product_ids)
    allowed_categories = _ids(offer.applicable_category_ids)
    if not allowed_products and not allowed_categories:
        return True
    return bool(allowed_products & _ids(product_ids)) or bool(allowed_categories & _ids(category_ids))


def meets_minimum_purchase(offer: Offer, purchase_amount: Decimal) -> bool:
    return offer.minimum_purchase_amount is None or purchase_amount >= offer.minimum_purchase_amount


def calculate_offer_discount(
    offer: Offer,
    purchase_amount: Decimal,
    product_ids: Optional[Sequence] = None,
    category_ids: Optional[Sequence] = None,
    now: Optional[datetime] = None,
) -> Decimal:
    """Discount `offer` grants on `purchase_amount`; zero when it does not apply."""
    now = now or utcnow()
    purchase_amount = Decimal(purchase_amount)

    if not offer.is_valid_at(now):
        logger.debug(f"Offer {offer.id} is not valid at {now}")
        return ZERO

    if not meets_minimum_purchase(offer, purchase_amount):
        logger.info(
            f"Purchase amount {purchase_amount} is below minimum {offer.minimum_purchase_amount}"
        )
        return ZERO

    if not is_offer_applicable(offer, product_ids, category_ids):
        logger.info(f"Offer {offer.id} not applicable to provided products/categories")
        return ZERO

    value = Decimal(offer.discount_value)
    if offer.offer_type == OfferType.PERCENTAGE_DISCOUNT:
        discount = (purchase_amount * value / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
    elif offer.offer_type == OfferType.FIXED_AMOUNT_DISCOUNT:
        discount = value
    elif offer.offer_type == OfferType.MINIMUM_PURCHASE:
        # minimum already checked above
        discount = value
    else:
        discount = ZERO

    if offer.maximum_discount_amount is not None and discount > offer.maximum_discount_amount:
        discount = Decimal(offer.maximum_discount_amount)

    return discount


def select_best_combination(
    offers: Sequence[Offer],
    purchase_amount: Decimal,
    product_ids: Optional[Sequence] = None,
    category_ids: Optional[Sequence] = None,
    now: Optional[datetime] = None,
) -> List[Offer]:
    """
    Pick the offers to apply together.

    A qualifying non-stackable offer excludes everything else: the one with
    the largest discount wins (first one in priority order on a tie). With
    no non-stackable candidate, every applicable stackable offer is returned
    by descending priority.
    """
    now = now or utcnow()
    candidates = sorted(
        (
            o for o in offers
            if o.is_valid_at(now) and is_offer_applicable(o, product_ids, category_ids)
        ),
        key=lambda o: o.priority or 0,
        reverse=True,
    )

    non_stackable = [o for o in candidates if not o.is_stackable]
    if non_stackable:
        best = None
        best_discount = None
        for offer in non_stackable:
            discount = calculate_offer_discount(offer, purchase_amount, product_ids, category_ids, now)
            if best_discount is None or discount > best_discount:
                best, best_discount = offer, discount
        return [best]

    return [o for o in candidates if o.is_stackable]


class OfferService:
    """Offer administration plus discount resolution for one tenant at a time."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_offer(self, tenant_id: uuid.UUID, user_id: str, data: OfferCreate) -> Offer:
        if data.valid_to < data.valid_from:
            raise ValidationError("valid_to must not be before valid_from")

        offer = Offer(
            tenant_id=tenant_id,
            created_by=user_id,
            status=OfferStatus.DRAFT.value,
            usage_count=0,
            **data.model_dump(),
        )
        offer.applicable_product_ids = [str(p) for p in data.applicable_product_ids or []] or None
        offer.applicable_category_ids = [str(c) for c in data.applicable_category_ids or []] or None
        self.db.add(offer)
        await self.db.flush()
        logger.info(f"Created offer '{offer.name}' ({offer.id}) for tenant {tenant_id}")
        return offer

    async def update_offer(self, offer_id: uuid.UUID, tenant_id: uuid.UUID, data: OfferUpdate) -> Offer:
        offer = await self.get_offer(offer_id, tenant_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field in ("applicable_product_ids", "applicable_category_ids") and value is not None:
                value = [str(v) for v in value] or None
            setattr(offer, field, value)
        if offer.valid_to < offer.valid_from:
            raise ValidationError("valid_to must not be before valid_from")
        await self.db.flush()
        return offer

    async def get_offer(self, offer_id: uuid.UUID, tenant_id: uuid.UUID) -> Offer:
        return await get_for_tenant(self.db, Offer, tenant_id, offer_id, "Offer")

    async def set_status(self, offer_id: uuid.UUID, tenant_id: uuid.UUID, status: OfferStatus) -> Offer:
        offer = await self.get_offer(offer_id, tenant_id)
        offer.status = status.value
        await self.db.flush()
        logger.info(f"Offer {offer_id} is now {status.value}")
        return offer

    async def activate_offer(self, offer_id: uuid.UUID, tenant_id: uuid.UUID) -> Offer:
        return await self.set_status(offer_id, tenant_id, OfferStatus.ACTIVE)

    async def pause_offer(self, offer_id: uuid.UUID, tenant_id: uuid.UUID) -> Offer:
        return await self.set_status(offer_id, tenant_id, OfferStatus.PAUSED)

    async def delete_offer(self, offer_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        offer = await self.get_offer(offer_id, tenant_id)
        await self.db.delete(offer)
        await self.db.flush()

    async def list_offers(
        self,
        tenant_id: uuid.UUID,
        status: Optional[OfferStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Offer]:
        stmt = tenant_select(Offer, tenant_id)
        if status:
            stmt = stmt.where(Offer.status == status.value)
        result = await self.db.execute(
            stmt.order_by(Offer.priority.desc(), Offer.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def list_active_offers(self, tenant_id: uuid.UUID, now: Optional[datetime] = None) -> List[Offer]:
        now = now or utcnow()
        result = await self.db.execute(
            tenant_select(
                Offer, tenant_id,
                Offer.status == OfferStatus.ACTIVE.value,
                Offer.valid_from <= now,
                Offer.valid_to >= now,
            ).order_by(Offer.priority.desc(), Offer.created_at)
        )
        return list(result.scalars().all())

    async def calculate_discount(
        self,
        offer_id: uuid.UUID,
        tenant_id: uuid.UUID,
        purchase_amount: Decimal,
        product_ids: Optional[Sequence] = None,
        category_ids: Optional[Sequence] = None,
    ) -> Decimal:
        offer = await self.get_offer(offer_id, tenant_id)
        discount = calculate_offer_discount(offer, purchase_amount, product_ids, category_ids)
        logger.info(f"Calculated discount {discount} for offer {offer_id} on purchase amount {purchase_amount}")
        return discount

    async def apply_offer(
        self,
        offer_id: uuid.UUID,
        tenant_id: uuid.UUID,
        purchase_amount: Decimal,
        product_ids: Optional[Sequence] = None,
        category_ids: Optional[Sequence] = None,
    ) -> Decimal:
        """Compute the discount and consume one use of the offer."""
        offer = await self.get_offer(offer_id, tenant_id)
        now = utcnow()
        if not offer.is_valid_at(now):
            raise BusinessError("Offer is not valid", error_code="OFFER_NOT_VALID")
        if not offer.has_usage_remaining():
            raise BusinessError("Offer usage limit reached", error_code="OFFER_USAGE_LIMIT_REACHED")

        discount = calculate_offer_discount(offer, purchase_amount, product_ids, category_ids, now=now)

        # Conditional increment: a concurrent application that used the last
        # slot makes this match zero rows.
        result = await self.db.execute(
            update(Offer)
            .where(
                Offer.id == offer.id,
                Offer.tenant_id == tenant_id,
                or_(Offer.usage_limit.is_(None), Offer.usage_count < Offer.usage_limit),
            )
            .values(usage_count=Offer.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise BusinessError("Offer usage limit reached", error_code="OFFER_USAGE_LIMIT_REACHED")

        await self.db.refresh(offer)
        logger.info(f"Applied offer {offer_id}. New usage count: {offer.usage_count}/{offer.usage_limit}")
        return discount

    async def get_applicable_offers(
        self,
        tenant_id: uuid.UUID,
        purchase_amount: Decimal,
        product_ids: Optional[Sequence] = None,
        category_ids: Optional[Sequence] = None,
    ) -> List[Offer]:
        now = utcnow()
        offers = await self.list_active_offers(tenant_id, now)
        applicable = [
            o for o in offers
            if o.is_valid_at(now)
            and is_offer_applicable(o, product_ids, category_ids)
            and meets_minimum_purchase(o, purchase_amount)
            and o.has_usage_remaining()
        ]
        return sorted(applicable, key=lambda o: o.priority or 0, reverse=True)

    async def get_best_offer_combination(
        self,
        tenant_id: uuid.UUID,
        purchase_amount: Decimal,
        product_ids: Optional[Sequence] = None,
        category_ids: Optional[Sequence] = None,
    ) -> List[OfferEvaluation]:
        now = utcnow()
        offers = await self.list_active_offers(tenant_id, now)
        selected = select_best_combination(offers, purchase_amount, product_ids, category_ids, now)
        return [
            OfferEvaluation(
                offer_id=o.id,
                name=o.name,
                offer_type=o.offer_type,
                is_stackable=o.is_stackable,
                priority=o.priority,
                discount_amount=calculate_offer_discount(o, purchase_amount, product_ids, category_ids, now),
            )
            for o in selected
        ]
