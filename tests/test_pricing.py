"""Offer administration and GST rate master against the database."""
import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest

from retailbill.core.exceptions import BusinessError, NotFoundError, ValidationError
from retailbill.db_types import utcnow
from retailbill.models.gst import GstRate
from retailbill.models.offer import OfferStatus, OfferType
from retailbill.schemas.gst import GstRateCreate
from retailbill.schemas.offer import OfferCreate
from retailbill.services.gst_service import GstService
from retailbill.services.offer_service import OfferService

from helpers import ADMIN_USER, money


def offer_request(**fields) -> OfferCreate:
    now = utcnow()
    values = dict(
        name="Festive 10%",
        offer_type=OfferType.PERCENTAGE_DISCOUNT,
        discount_value=Decimal("10"),
        valid_from=now - timedelta(days=1),
        valid_to=now + timedelta(days=7),
    )
    values.update(fields)
    return OfferCreate(**values)


async def active_offer(db, tenant, **fields):
    service = OfferService(db)
    offer = await service.create_offer(tenant.id, ADMIN_USER, offer_request(**fields))
    return await service.activate_offer(offer.id, tenant.id)


# ==================== Offers ====================

async def test_new_offer_is_draft_and_gives_nothing(db, tenant):
    service = OfferService(db)
    offer = await service.create_offer(tenant.id, ADMIN_USER, offer_request())

    assert offer.status == OfferStatus.DRAFT.value
    assert offer.usage_count == 0
    assert await service.calculate_discount(offer.id, tenant.id, Decimal("1000")) == 0

    await service.activate_offer(offer.id, tenant.id)
    assert await service.calculate_discount(offer.id, tenant.id, Decimal("1000")) == money("100")


async def test_offer_window_must_be_ordered(db, tenant):
    now = utcnow()
    with pytest.raises(ValidationError):
        await OfferService(db).create_offer(
            tenant.id, ADMIN_USER, offer_request(valid_from=now, valid_to=now - timedelta(days=1)),
        )


async def test_apply_offer_consumes_usage(db, tenant):
    offer = await active_offer(db, tenant, usage_limit=2)
    service = OfferService(db)

    assert await service.apply_offer(offer.id, tenant.id, Decimal("500")) == money("50")
    assert await service.apply_offer(offer.id, tenant.id, Decimal("200")) == money("20")
    assert offer.usage_count == 2

    with pytest.raises(BusinessError) as exc:
        await service.apply_offer(offer.id, tenant.id, Decimal("500"))
    assert exc.value.error_code == "OFFER_USAGE_LIMIT_REACHED"
    assert offer.usage_count == 2


async def test_paused_offer_cannot_be_applied(db, tenant):
    offer = await active_offer(db, tenant, usage_limit=1)
    service = OfferService(db)
    await service.pause_offer(offer.id, tenant.id)

    with pytest.raises(BusinessError) as exc:
        await service.apply_offer(offer.id, tenant.id, Decimal("500"))
    assert exc.value.error_code == "OFFER_NOT_VALID"

    await db.refresh(offer)
    assert offer.usage_count == 0

    await service.activate_offer(offer.id, tenant.id)
    assert await service.apply_offer(offer.id, tenant.id, Decimal("500")) == money("50")


async def test_applicable_offers_respect_basket(db, tenant):
    await active_offer(db, tenant, name="Everything", priority=1)
    await active_offer(db, tenant, name="Snacks only", applicable_category_ids=["snacks"], priority=5)
    await active_offer(db, tenant, name="Big baskets", minimum_purchase_amount=Decimal("2000"))
    paused = await active_offer(db, tenant, name="Paused")
    await OfferService(db).pause_offer(paused.id, tenant.id)

    offers = await OfferService(db).get_applicable_offers(tenant.id, Decimal("500"), category_ids=["snacks"])
    assert [o.name for o in offers] == ["Snacks only", "Everything"]

    offers = await OfferService(db).get_applicable_offers(tenant.id, Decimal("500"), category_ids=["dairy"])
    assert [o.name for o in offers] == ["Everything"]


async def test_best_combination_reports_discounts(db, tenant):
    await active_offer(db, tenant, name="Flat 150", offer_type=OfferType.FIXED_AMOUNT_DISCOUNT, discount_value=Decimal("150"))
    await active_offer(db, tenant, name="Ten percent", maximum_discount_amount=Decimal("80"))
    await active_offer(db, tenant, name="Stacker", is_stackable=True, priority=99)

    evaluations = await OfferService(db).get_best_offer_combination(tenant.id, Decimal("1000"))

    assert len(evaluations) == 1
    assert evaluations[0].name == "Flat 150"
    assert evaluations[0].discount_amount == money("150")


async def test_offers_are_tenant_scoped(db, tenant):
    offer = await active_offer(db, tenant)
    with pytest.raises(NotFoundError):
        await OfferService(db).get_offer(offer.id, uuid.uuid4())


# ==================== GST rates ====================

async def test_calculate_uses_hsn_then_sac(db, tenant):
    db.add(GstRate(
        hsn_code="8471", cgst_rate=Decimal("9"), sgst_rate=Decimal("9"), igst_rate=Decimal("18"),
        effective_from=date(2017, 7, 1),
    ))
    db.add(GstRate(
        sac_code="9983", cgst_rate=Decimal("9"), sgst_rate=Decimal("9"), igst_rate=Decimal("18"),
        effective_from=date(2017, 7, 1),
    ))
    await db.flush()
    service = GstService(db)

    local = await service.calculate("8471", Decimal("1000"), "Karnataka", "karnataka")
    assert (local.cgst_amount, local.sgst_amount, local.igst_amount) == (money("90"), money("90"), 0)
    assert not local.is_interstate

    remote = await service.calculate("9983", Decimal("1000"), "Karnataka", "Kerala")
    assert remote.igst_amount == money("180")
    assert remote.total_tax == money("180")

    with pytest.raises(NotFoundError):
        await service.calculate("0000", Decimal("1000"), "Karnataka", "Kerala")


async def test_tenant_override_and_expired_rates(db, tenant):
    db.add(GstRate(
        hsn_code="6109", cgst_rate=Decimal("2.5"), sgst_rate=Decimal("2.5"), igst_rate=Decimal("5"),
        effective_from=date(2017, 7, 1), effective_to=date(2019, 12, 31),
    ))
    await db.flush()
    service = GstService(db)

    with pytest.raises(NotFoundError):
        await service.calculate("6109", Decimal("100"), "Karnataka", "Karnataka", tenant.id)

    await service.create_rate(
        tenant.id,
        GstRateCreate(
            hsn_code="6109", cgst_rate=Decimal("6"), sgst_rate=Decimal("6"), igst_rate=Decimal("12"),
            effective_from=date(2020, 1, 1),
        ),
    )
    result = await service.calculate("6109", Decimal("100"), "Karnataka", "Karnataka", tenant.id)
    assert result.total_tax == money("12")


async def test_rate_needs_a_code(db, tenant):
    with pytest.raises(ValidationError):
        await GstService(db).create_rate(tenant.id, GstRateCreate(effective_from=date(2024, 4, 1)))
