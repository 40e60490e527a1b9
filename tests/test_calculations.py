"""Pure calculation checks; no database involved."""
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaValidationError

from retailbill.core.exceptions import ValidationError
from retailbill.models.credit_note import CreditNote, CreditNoteItem
from retailbill.models.gst import GstRate
from retailbill.models.invoice import Invoice, InvoiceItem, Payment
from retailbill.models.offer import Offer, OfferStatus, OfferType
from retailbill.models.recurring import RecurringFrequency
from retailbill.schemas.invoice import InvoiceCreate, InvoiceItemCreate, PaymentCreate
from retailbill.services.gst_service import (
    ensure_valid_gstin,
    is_interstate_supply,
    pan_from_gstin,
    split_gst,
    state_code_from_gstin,
    validate_gstin,
)
from retailbill.services.invoice_service import build_invoice_item, held_invoice_total
from retailbill.services.offer_service import calculate_offer_discount, select_best_combination
from retailbill.services.recurring_invoice_service import add_months, calculate_next_invoice_date

from helpers import money

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)
TENANT = uuid.uuid4()


def make_rate(cgst="9", sgst="9", igst="18", cess="0") -> GstRate:
    return GstRate(
        hsn_code="8471",
        cgst_rate=Decimal(cgst),
        sgst_rate=Decimal(sgst),
        igst_rate=Decimal(igst),
        cess_rate=Decimal(cess),
    )


def make_offer(**overrides) -> Offer:
    values = dict(
        id=uuid.uuid4(),
        name="Offer",
        offer_type=OfferType.PERCENTAGE_DISCOUNT.value,
        status=OfferStatus.ACTIVE.value,
        discount_value=Decimal("10"),
        minimum_purchase_amount=None,
        maximum_discount_amount=None,
        valid_from=NOW - timedelta(days=1),
        valid_to=NOW + timedelta(days=1),
        usage_limit=None,
        usage_count=0,
        applicable_product_ids=None,
        applicable_category_ids=None,
        is_stackable=False,
        priority=0,
    )
    values.update(overrides)
    return Offer(**values)


# ==================== GST ====================

class TestGstSplit:
    def test_intra_state_splits_into_cgst_and_sgst(self):
        result = split_gst(Decimal("1000"), make_rate(), is_interstate=False)
        assert result.cgst_amount == money("90.00")
        assert result.sgst_amount == money("90.00")
        assert result.igst_amount == money("0")
        assert result.total_tax == money("180.00")

    def test_inter_state_uses_igst(self):
        result = split_gst(Decimal("1000"), make_rate(), is_interstate=True)
        assert result.cgst_amount == 0
        assert result.sgst_amount == 0
        assert result.igst_amount == money("180.00")
        assert result.total_tax == money("180.00")

    def test_cess_applies_either_way(self):
        rate = make_rate(cgst="14", sgst="14", igst="28", cess="12")
        intra = split_gst(Decimal("1000"), rate, is_interstate=False)
        inter = split_gst(Decimal("1000"), rate, is_interstate=True)
        assert intra.cess_amount == inter.cess_amount == money("120.00")
        assert intra.total_tax == inter.total_tax == money("400.00")

    def test_components_round_half_up(self):
        result = split_gst(Decimal("10.05"), make_rate(cgst="2.5", sgst="2.5", igst="5"), False)
        # 10.05 x 2.5% = 0.25125
        assert result.cgst_amount == money("0.25")
        assert result.sgst_amount == money("0.25")

    def test_region_comparison_ignores_case_and_accepts_state_codes(self):
        assert not is_interstate_supply("Karnataka", "KARNATAKA")
        assert not is_interstate_supply("29", "karnataka")
        assert is_interstate_supply("Karnataka", "Tamil Nadu")


class TestGstin:
    VALID = "29ABCDE1234F1Z5"

    def test_valid_gstin(self):
        assert validate_gstin(self.VALID)
        assert state_code_from_gstin(self.VALID) == "29"
        assert pan_from_gstin(self.VALID) == "ABCDE1234F"

    @pytest.mark.parametrize("gstin", ["", None, "29ABCDE1234F1X5", "2ABCDE1234F1Z5", "29abcde1234f1z5"])
    def test_invalid_gstin(self, gstin):
        assert not validate_gstin(gstin)

    def test_ensure_valid_gstin_normalises_case(self):
        assert ensure_valid_gstin(" 29abcde1234f1z5 ") == self.VALID
        assert ensure_valid_gstin(None) is None

    def test_ensure_valid_gstin_rejects_garbage(self):
        with pytest.raises(ValidationError):
            ensure_valid_gstin("NOT-A-GSTIN")


# ==================== Offers ====================

class TestOfferDiscount:
    def test_percentage_discount_is_clamped_to_cap(self):
        offer = make_offer(
            minimum_purchase_amount=Decimal("500"),
            maximum_discount_amount=Decimal("80"),
        )
        assert calculate_offer_discount(offer, Decimal("1000"), now=NOW) == money("80.00")

    def test_percentage_discount_rounds_half_up(self):
        offer = make_offer(discount_value=Decimal("12.5"))
        assert calculate_offer_discount(offer, Decimal("10.10"), now=NOW) == money("1.26")

    def test_below_minimum_purchase_yields_zero(self):
        offer = make_offer(minimum_purchase_amount=Decimal("500"))
        assert calculate_offer_discount(offer, Decimal("499.99"), now=NOW) == 0

    def test_inactive_or_expired_offer_yields_zero(self):
        assert calculate_offer_discount(make_offer(status=OfferStatus.PAUSED.value), Decimal("100"), now=NOW) == 0
        expired = make_offer(valid_to=NOW - timedelta(seconds=1))
        assert calculate_offer_discount(expired, Decimal("100"), now=NOW) == 0

    def test_fixed_amount_and_minimum_purchase_types(self):
        fixed = make_offer(offer_type=OfferType.FIXED_AMOUNT_DISCOUNT.value, discount_value=Decimal("50"))
        assert calculate_offer_discount(fixed, Decimal("20"), now=NOW) == money("50")

        gated = make_offer(
            offer_type=OfferType.MINIMUM_PURCHASE.value,
            discount_value=Decimal("100"),
            minimum_purchase_amount=Decimal("1000"),
        )
        assert calculate_offer_discount(gated, Decimal("1000"), now=NOW) == money("100")
        assert calculate_offer_discount(gated, Decimal("999"), now=NOW) == 0

    def test_product_or_category_overlap_is_enough(self):
        offer = make_offer(applicable_product_ids=["p1"], applicable_category_ids=["c1"])
        assert calculate_offer_discount(offer, Decimal("100"), ["p9"], ["c1"], now=NOW) == money("10")
        assert calculate_offer_discount(offer, Decimal("100"), ["p1"], [], now=NOW) == money("10")
        assert calculate_offer_discount(offer, Decimal("100"), ["p9"], ["c9"], now=NOW) == 0

    @pytest.mark.parametrize("amount", ["0", "1", "799.99", "800", "5000", "1000000"])
    def test_discount_never_exceeds_cap(self, amount):
        offer = make_offer(discount_value=Decimal("50"), maximum_discount_amount=Decimal("400"))
        assert calculate_offer_discount(offer, Decimal(amount), now=NOW) <= Decimal("400")


class TestBestCombination:
    def test_best_non_stackable_offer_excludes_everything_else(self):
        small = make_offer(name="small", discount_value=Decimal("5"), priority=10)
        large = make_offer(name="large", discount_value=Decimal("15"), priority=1)
        stackable = make_offer(name="stack", is_stackable=True, discount_value=Decimal("50"))

        selected = select_best_combination([small, large, stackable], Decimal("1000"), now=NOW)
        assert [o.name for o in selected] == ["large"]

    def test_tie_goes_to_higher_priority(self):
        first = make_offer(name="first", priority=5)
        second = make_offer(name="second", priority=1)
        selected = select_best_combination([second, first], Decimal("1000"), now=NOW)
        assert [o.name for o in selected] == ["first"]

    def test_all_stackable_offers_by_priority(self):
        low = make_offer(name="low", is_stackable=True, priority=1)
        high = make_offer(name="high", is_stackable=True, priority=9)
        expired = make_offer(name="old", is_stackable=True, valid_to=NOW - timedelta(days=1))

        selected = select_best_combination([low, high, expired], Decimal("1000"), now=NOW)
        assert [o.name for o in selected] == ["high", "low"]


# ==================== Invoice totals ====================

class TestInvoiceTotals:
    def build_invoice(self) -> Invoice:
        invoice = Invoice(items=[], payments=[])
        for name in ("Pen", "Pad"):
            item = InvoiceItem(
                product_name=name,
                quantity=2,
                unit_price=Decimal("50.00"),
                discount_amount=Decimal("0"),
                tax_amount=Decimal("5.00"),
                cgst_amount=Decimal("0"),
                sgst_amount=Decimal("0"),
                igst_amount=Decimal("0"),
                cess_amount=Decimal("0"),
            )
            item.calculate_line_total()
            invoice.add_item(item)
        invoice.add_payment(Payment(mode="CASH", amount=Decimal("50.00")))
        return invoice

    def test_two_items_and_partial_payment(self):
        invoice = self.build_invoice()
        invoice.calculate_totals()

        assert [i.line_total for i in invoice.items] == [money("105.00"), money("105.00")]
        assert [i.line_number for i in invoice.items] == [1, 2]
        assert invoice.subtotal == money("210.00")
        assert invoice.tax_amount == money("10.00")
        assert invoice.total_amount == invoice.subtotal + invoice.tax_amount - invoice.discount_amount
        assert invoice.paid_amount == money("50.00")
        assert invoice.balance_amount == invoice.total_amount - money("50.00")

    def test_recalculation_is_idempotent(self):
        invoice = self.build_invoice()
        invoice.calculate_totals()
        first = (invoice.subtotal, invoice.tax_amount, invoice.total_amount, invoice.balance_amount)
        invoice.calculate_totals()
        assert (invoice.subtotal, invoice.tax_amount, invoice.total_amount, invoice.balance_amount) == first

    def test_overpayment_gives_negative_balance(self):
        invoice = self.build_invoice()
        invoice.add_payment(Payment(mode="CARD", amount=Decimal("500.00")))
        invoice.calculate_totals()
        assert invoice.balance_amount < 0

    def test_item_derives_gst_from_single_rate(self):
        data = InvoiceItemCreate(product_name="Mouse", quantity=2, unit_price=Decimal("500"), tax_rate=Decimal("18"))
        intra = build_invoice_item(TENANT, data, is_interstate=False)
        assert intra.cgst_amount == intra.sgst_amount == money("90.00")
        assert intra.igst_amount == 0
        assert intra.tax_amount == money("180.00")
        assert intra.line_total == money("1180.00")

        inter = build_invoice_item(TENANT, data, is_interstate=True)
        assert inter.igst_amount == money("180.00")
        assert inter.cgst_amount == 0

    def test_supplied_tax_amount_wins_over_rates(self):
        data = InvoiceItemCreate(
            product_name="Cable", quantity=1, unit_price=Decimal("100"),
            tax_rate=Decimal("18"), tax_amount=Decimal("7.50"),
        )
        item = build_invoice_item(TENANT, data, is_interstate=False)
        assert item.tax_amount == money("7.50")
        assert item.line_total == money("107.50")

    def test_held_invoice_total(self):
        request = InvoiceCreate(
            store_id="S1",
            counter_id="C1",
            items=[
                InvoiceItemCreate(
                    product_name="Shirt", quantity=2, unit_price=Decimal("100"),
                    discount_type="PERCENTAGE", discount_value=Decimal("10"), tax_rate=Decimal("5"),
                ),
                InvoiceItemCreate(
                    product_name="Socks", quantity=3, unit_price=Decimal("20"),
                    discount_type="FIXED", discount_value=Decimal("2"),
                ),
            ],
        )
        # (200 - 20) * 1.05 + (60 - 6)
        assert held_invoice_total(request) == money("243.00")

    def test_sub_cent_amounts_are_rejected(self):
        with pytest.raises(SchemaValidationError):
            InvoiceItemCreate(product_name="Rice", quantity=1, unit_price=Decimal("10.005"))
        with pytest.raises(SchemaValidationError):
            PaymentCreate(mode="CASH", amount=Decimal("9.999"))

    def test_sub_cent_item_values_round_to_paise(self):
        invoice = Invoice(items=[], payments=[])
        item = InvoiceItem(
            product_name="Loose rice",
            quantity=1,
            unit_price=Decimal("10.000"),
            discount_amount=Decimal("0.004"),
            tax_amount=Decimal("0.006"),
        )
        item.calculate_line_total()
        invoice.add_item(item)
        invoice.calculate_totals()

        assert (item.discount_amount, item.tax_amount, item.line_total) == (money("0"), money("0.01"), money("10.01"))
        assert invoice.total_amount == money("10.02")
        assert invoice.total_amount.as_tuple().exponent == -2


# ==================== Recurring schedule ====================

class TestScheduleAdvance:
    @pytest.mark.parametrize(
        "frequency, expected",
        [
            (RecurringFrequency.DAILY, date(2026, 1, 16)),
            (RecurringFrequency.WEEKLY, date(2026, 1, 22)),
            (RecurringFrequency.BIWEEKLY, date(2026, 1, 29)),
            (RecurringFrequency.MONTHLY, date(2026, 2, 15)),
            (RecurringFrequency.QUARTERLY, date(2026, 4, 15)),
            (RecurringFrequency.SEMIANNUALLY, date(2026, 7, 15)),
            (RecurringFrequency.ANNUALLY, date(2027, 1, 15)),
        ],
    )
    def test_one_period(self, frequency, expected):
        assert calculate_next_invoice_date(date(2026, 1, 15), frequency) == expected

    def test_unknown_frequency_advances_one_month(self):
        assert calculate_next_invoice_date(date(2026, 1, 15), "FORTNIGHTLY") == date(2026, 2, 15)

    def test_month_end_clamps(self):
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)
        assert add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)

    def test_monthly_sequence_strictly_increases(self):
        dates = [date(2026, 1, 10)]
        for _ in range(24):
            dates.append(calculate_next_invoice_date(dates[-1], RecurringFrequency.MONTHLY))
        assert all(a < b for a, b in zip(dates, dates[1:]))
        assert all(d.day == 10 for d in dates)


# ==================== Credit note totals ====================

def test_credit_note_item_and_note_totals():
    items = [
        CreditNoteItem(
            product_name="Kettle", quantity=2, unit_price=Decimal("500"),
            discount_amount=Decimal("100"), tax_percentage=Decimal("18"),
        ),
        CreditNoteItem(
            product_name="Mug", quantity=1, unit_price=Decimal("99.99"),
            discount_amount=Decimal("0"), tax_percentage=Decimal("5"),
        ),
    ]
    note = CreditNote(items=items)
    note.calculate_totals()

    assert items[0].subtotal == money("900.00")
    assert items[0].tax_amount == money("162.00")
    assert items[0].total == money("1062.00")
    assert items[1].tax_amount == money("5.00")
    assert note.subtotal == money("999.99")
    assert note.tax_amount == money("167.00")
    assert note.total_amount == money("1166.99")
