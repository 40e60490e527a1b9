"""Credit notes, quotes and recurring schedules."""
import uuid
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select

from retailbill.core.exceptions import IllegalStateError, NotFoundError
from retailbill.models.credit_note import ApplicationMethod, CreditNoteReason, CreditNoteStatus
from retailbill.models.document_sequence import DocumentSequence
from retailbill.models.inventory import MovementType
from retailbill.models.invoice import Invoice, InvoiceStatus, PaymentMode
from retailbill.models.quote import QuoteStatus
from retailbill.models.recurring import RecurringFrequency
from retailbill.schemas.credit_note import CreditNoteCreate, CreditNoteItemCreate
from retailbill.schemas.customer import CustomerCreate
from retailbill.schemas.inventory import ProductCreate
from retailbill.schemas.invoice import InvoiceCreate, InvoiceItemCreate, PaymentCreate
from retailbill.schemas.quote import QuoteCreate, QuoteItemCreate
from retailbill.schemas.recurring import RecurringInvoiceCreate
from retailbill.services.credit_note_service import CreditNoteService
from retailbill.services.customer_service import CustomerService
from retailbill.services.inventory_service import InventoryService
from retailbill.services.invoice_service import InvoiceService
from retailbill.services import recurring_invoice_service as recurring_module
from retailbill.services.quote_service import QuoteService
from retailbill.services.recurring_invoice_service import RECURRING_INVOICE_NOTE, RecurringInvoiceService

from helpers import ADMIN_USER, money


@pytest.fixture
async def customer(db, tenant):
    return await CustomerService(db).create_customer(
        tenant.id, CustomerCreate(name="Meera", phone="9811122233", email="meera@example.com", state="Karnataka"),
    )


async def completed_invoice(db, tenant, customer=None, paid="600"):
    """A 1000.00 invoice, partly paid."""
    service = InvoiceService(db)
    invoice = await service.create_invoice(
        tenant.id, ADMIN_USER,
        InvoiceCreate(
            store_id="MAIN",
            counter_id="C1",
            customer_id=customer.id if customer else None,
            items=[InvoiceItemCreate(product_name="Kettle", quantity=1, unit_price=Decimal("1000"))],
        ),
    )
    return await service.complete_invoice(
        invoice.id, tenant.id, ADMIN_USER,
        [PaymentCreate(mode=PaymentMode.CASH, amount=Decimal(paid))],
    )


def credit_request(invoice, amount, method=ApplicationMethod.REDUCE_INVOICE, **fields) -> CreditNoteCreate:
    return CreditNoteCreate(
        invoice_id=invoice.id,
        reason=CreditNoteReason.DEFECTIVE_PRODUCT,
        application_method=method,
        items=[CreditNoteItemCreate(product_name="Kettle", quantity=1, unit_price=Decimal(amount))],
        **fields,
    )


async def walk_to_issued(service, credit_note, tenant):
    await service.submit_for_approval(credit_note.id, tenant.id, ADMIN_USER)
    await service.approve_credit_note(credit_note.id, tenant.id, "manager-1", "ok")
    return await service.issue_credit_note(credit_note.id, tenant.id, ADMIN_USER)


# ==================== Credit notes ====================

async def test_credit_note_requires_completed_invoice(db, tenant):
    draft = await InvoiceService(db).create_invoice(
        tenant.id, ADMIN_USER,
        InvoiceCreate(
            store_id="MAIN", counter_id="C1",
            items=[InvoiceItemCreate(product_name="Kettle", quantity=1, unit_price=Decimal("1000"))],
        ),
    )
    with pytest.raises(IllegalStateError) as exc:
        await CreditNoteService(db).create_credit_note(tenant.id, ADMIN_USER, credit_request(draft, "100"))
    assert exc.value.error_code == "INVOICE_NOT_COMPLETED"


async def test_full_workflow_reduces_invoice_balance(db, tenant):
    invoice = await completed_invoice(db, tenant)
    assert invoice.balance_amount == money("400")

    service = CreditNoteService(db)
    credit_note = await service.create_credit_note(tenant.id, ADMIN_USER, credit_request(invoice, "300"))
    assert credit_note.credit_note_number == "CN/0001"
    assert credit_note.status == CreditNoteStatus.DRAFT.value
    assert credit_note.total_amount == money("300")
    assert credit_note.invoice_number == invoice.invoice_number

    issued = await walk_to_issued(service, credit_note, tenant)
    assert issued.status == CreditNoteStatus.ISSUED.value
    assert issued.approved_by == "manager-1"

    applied = await service.apply_credit_note(credit_note.id, tenant.id, ADMIN_USER)
    assert applied.status == CreditNoteStatus.APPLIED.value

    invoice = await InvoiceService(db).get_invoice(invoice.id, tenant.id)
    credit_payments = [p for p in invoice.payments if p.mode == PaymentMode.CREDIT_NOTE.value]
    assert [p.amount for p in credit_payments] == [money("300")]
    assert credit_payments[0].reference_number == "CN/0001"
    assert invoice.balance_amount == money("100")


async def test_reduce_invoice_is_capped_at_outstanding_balance(db, tenant):
    invoice = await completed_invoice(db, tenant, paid="900")
    service = CreditNoteService(db)
    credit_note = await service.create_credit_note(tenant.id, ADMIN_USER, credit_request(invoice, "500"))
    await walk_to_issued(service, credit_note, tenant)
    await service.apply_credit_note(credit_note.id, tenant.id, ADMIN_USER)

    invoice = await InvoiceService(db).get_invoice(invoice.id, tenant.id)
    assert invoice.paid_amount == money("1000")
    assert invoice.balance_amount == money("0")


async def test_store_credit_goes_to_customer_wallet(db, tenant, customer):
    invoice = await completed_invoice(db, tenant, customer=customer, paid="1000")
    service = CreditNoteService(db)
    credit_note = await service.create_credit_note(
        tenant.id, ADMIN_USER, credit_request(invoice, "250", ApplicationMethod.STORE_CREDIT),
    )
    await walk_to_issued(service, credit_note, tenant)
    await service.apply_credit_note(credit_note.id, tenant.id, ADMIN_USER)

    assert customer.wallet_balance == money("250")


async def test_refund_gets_reference(db, tenant):
    invoice = await completed_invoice(db, tenant, paid="1000")
    service = CreditNoteService(db)

    generated = await service.create_credit_note(tenant.id, ADMIN_USER, credit_request(invoice, "10", ApplicationMethod.REFUND))
    await walk_to_issued(service, generated, tenant)
    generated = await service.apply_credit_note(generated.id, tenant.id, ADMIN_USER)
    assert generated.refund_reference.startswith("RF-")

    supplied = await service.create_credit_note(tenant.id, ADMIN_USER, credit_request(invoice, "10", ApplicationMethod.REFUND))
    await walk_to_issued(service, supplied, tenant)
    supplied = await service.apply_credit_note(supplied.id, tenant.id, ADMIN_USER, refund_reference="UTR-991")
    assert supplied.refund_reference == "UTR-991"
    assert supplied.credit_note_number == "CN/0002"


async def test_steps_cannot_be_skipped(db, tenant):
    invoice = await completed_invoice(db, tenant)
    service = CreditNoteService(db)
    credit_note = await service.create_credit_note(tenant.id, ADMIN_USER, credit_request(invoice, "100"))

    with pytest.raises(IllegalStateError):
        await service.approve_credit_note(credit_note.id, tenant.id, ADMIN_USER)
    with pytest.raises(IllegalStateError):
        await service.issue_credit_note(credit_note.id, tenant.id, ADMIN_USER)
    with pytest.raises(IllegalStateError):
        await service.apply_credit_note(credit_note.id, tenant.id, ADMIN_USER)
    assert credit_note.status == CreditNoteStatus.DRAFT.value


async def test_cancel(db, tenant):
    invoice = await completed_invoice(db, tenant)
    service = CreditNoteService(db)

    pending = await service.create_credit_note(tenant.id, ADMIN_USER, credit_request(invoice, "100"))
    await service.submit_for_approval(pending.id, tenant.id, ADMIN_USER)
    cancelled = await service.cancel_credit_note(pending.id, tenant.id, ADMIN_USER, "raised twice")
    assert cancelled.status == CreditNoteStatus.CANCELLED.value
    assert cancelled.cancel_reason == "raised twice"

    applied = await service.create_credit_note(tenant.id, ADMIN_USER, credit_request(invoice, "100"))
    await walk_to_issued(service, applied, tenant)
    await service.apply_credit_note(applied.id, tenant.id, ADMIN_USER)
    with pytest.raises(IllegalStateError, match="Cannot cancel applied credit note"):
        await service.cancel_credit_note(applied.id, tenant.id, ADMIN_USER)


async def test_issue_restocks_flagged_items(db, tenant):
    inventory = InventoryService(db)
    product = await inventory.create_product(tenant.id, ProductCreate(name="Kettle", sku="KT-1", unit_price=Decimal("1000")))
    await inventory.record_movement(tenant.id, product.id, "MAIN", MovementType.IN, 5)

    service = InvoiceService(db)
    invoice = await service.create_invoice(
        tenant.id, ADMIN_USER,
        InvoiceCreate(
            store_id="MAIN", counter_id="C1",
            items=[InvoiceItemCreate(product_id=product.id, product_name="Kettle", quantity=2, unit_price=Decimal("1000"))],
        ),
    )
    invoice = await service.complete_invoice(invoice.id, tenant.id, ADMIN_USER, [])
    assert (await inventory.get_stock(tenant.id, product.id, "MAIN")).quantity == 3

    credit_notes = CreditNoteService(db)
    credit_note = await credit_notes.create_credit_note(
        tenant.id, ADMIN_USER,
        CreditNoteCreate(
            invoice_id=invoice.id,
            reason=CreditNoteReason.PRODUCT_RETURN,
            restock_items=True,
            items=[
                CreditNoteItemCreate(
                    invoice_item_id=invoice.items[0].id, quantity=1,
                    unit_price=Decimal("1000"), restock=True,
                ),
            ],
        ),
    )
    assert credit_note.items[0].product_id == product.id
    assert credit_note.items[0].product_name == "Kettle"

    await walk_to_issued(credit_notes, credit_note, tenant)
    assert (await inventory.get_stock(tenant.id, product.id, "MAIN")).quantity == 4


# ==================== Quotes ====================

def quote_request(customer, **fields) -> QuoteCreate:
    return QuoteCreate(
        customer_id=customer.id,
        items=[
            QuoteItemCreate(
                product_name="Installation", quantity=2, unit_price=Decimal("100"),
                discount_amount=Decimal("20"), tax_rate=Decimal("18"),
            )
        ],
        **fields,
    )


async def test_quote_totals_and_number(db, tenant, customer):
    quote = await QuoteService(db).create_quote(tenant.id, ADMIN_USER, quote_request(customer))

    assert quote.quote_number == f"QT/{DocumentSequence.get_financial_year()}/0001"
    assert quote.status == QuoteStatus.DRAFT.value
    assert quote.customer_name == "Meera"
    assert quote.subtotal == money("200")
    assert quote.discount == money("20")
    assert quote.tax_amount == money("32.40")
    assert quote.total == money("212.40")
    assert (quote.valid_until - quote.quote_date).days == 30


async def test_quote_conversion_is_final(db, tenant, customer):
    service = QuoteService(db)
    quote = await service.create_quote(tenant.id, ADMIN_USER, quote_request(customer))
    await service.send_quote(quote.id, tenant.id)
    await service.accept_quote(quote.id, tenant.id)

    invoice = await service.convert_to_invoice(quote.id, tenant.id, ADMIN_USER)
    assert invoice.status == InvoiceStatus.DRAFT.value
    assert invoice.customer_id == customer.id
    assert invoice.tax_amount == money("32.40")
    assert quote.status == QuoteStatus.CONVERTED.value
    assert quote.converted_invoice_id == invoice.id

    for action in (service.send_quote, service.accept_quote, service.reject_quote):
        with pytest.raises(IllegalStateError):
            await action(quote.id, tenant.id)
    with pytest.raises(IllegalStateError):
        await service.convert_to_invoice(quote.id, tenant.id, ADMIN_USER)


async def test_rejected_quote_cannot_be_converted(db, tenant, customer):
    service = QuoteService(db)
    quote = await service.create_quote(tenant.id, ADMIN_USER, quote_request(customer))
    await service.reject_quote(quote.id, tenant.id, "too expensive")
    assert quote.rejection_reason == "too expensive"

    with pytest.raises(IllegalStateError, match="rejected"):
        await service.convert_to_invoice(quote.id, tenant.id, ADMIN_USER)


async def test_sent_quotes_expire(db, tenant, customer):
    service = QuoteService(db)
    sent = await service.create_quote(
        tenant.id, ADMIN_USER,
        quote_request(customer, quote_date=date(2026, 1, 1), valid_until=date(2026, 1, 31)),
    )
    await service.send_quote(sent.id, tenant.id)
    await service.create_quote(
        tenant.id, ADMIN_USER,
        quote_request(customer, quote_date=date(2026, 1, 1), valid_until=date(2026, 1, 31)),
    )

    assert await service.mark_expired_quotes(tenant.id, today=date(2026, 1, 31)) == 0
    assert await service.mark_expired_quotes(tenant.id, today=date(2026, 2, 1)) == 1

    await db.refresh(sent, ["status"])
    assert sent.status == QuoteStatus.EXPIRED.value


async def test_quote_for_unknown_customer(db, tenant, customer):
    request = quote_request(customer).model_copy(update={"customer_id": uuid.uuid4()})
    with pytest.raises(NotFoundError):
        await QuoteService(db).create_quote(tenant.id, ADMIN_USER, request)


# ==================== Recurring schedules ====================

def schedule_request(customer, **fields) -> RecurringInvoiceCreate:
    values = dict(
        customer_id=customer.id,
        frequency=RecurringFrequency.MONTHLY,
        start_date=date(2026, 1, 31),
        amount=Decimal("500"),
        tax_rate=Decimal("18"),
        description="Maintenance contract",
    )
    values.update(fields)
    return RecurringInvoiceCreate(**values)


async def test_due_schedule_generates_draft_invoice(db, tenant, customer):
    service = RecurringInvoiceService(db)
    schedule = await service.create_recurring_invoice(tenant.id, ADMIN_USER, schedule_request(customer))
    assert schedule.next_invoice_date == date(2026, 1, 31)
    assert schedule.customer_name == "Meera"

    assert await service.process_due_invoices(tenant.id, today=date(2026, 1, 30)) == []

    generated = await service.process_due_invoices(tenant.id, today=date(2026, 2, 1))
    assert len(generated) == 1
    invoice = generated[0]
    assert invoice.status == InvoiceStatus.DRAFT.value
    assert invoice.notes == RECURRING_INVOICE_NOTE
    assert invoice.items[0].product_name == "Maintenance contract"
    assert invoice.total_cgst == invoice.total_sgst == money("45")

    assert schedule.invoices_generated == 1
    assert schedule.last_invoice_date == date(2026, 2, 1)
    assert schedule.next_invoice_date == date(2026, 2, 28)


async def test_schedule_stops_at_max_invoices(db, tenant, customer):
    service = RecurringInvoiceService(db)
    schedule = await service.create_recurring_invoice(
        tenant.id, ADMIN_USER, schedule_request(customer, start_date=date(2026, 1, 1), max_invoices=2),
    )

    today = date(2026, 6, 1)
    assert len(await service.process_due_invoices(tenant.id, today=today)) == 1
    assert len(await service.process_due_invoices(tenant.id, today=today)) == 1
    assert await service.process_due_invoices(tenant.id, today=today) == []

    assert schedule.invoices_generated == 2
    assert schedule.is_active is False
    assert await service.process_due_invoices(tenant.id, today=today) == []


async def test_schedule_stops_after_end_date(db, tenant, customer):
    service = RecurringInvoiceService(db)
    schedule = await service.create_recurring_invoice(
        tenant.id, ADMIN_USER,
        schedule_request(customer, start_date=date(2026, 1, 1), end_date=date(2026, 1, 15)),
    )

    assert await service.generate_invoice_from_recurring(schedule, today=date(2026, 1, 16)) is None
    assert schedule.is_active is False
    assert schedule.invoices_generated == 0


async def test_paused_schedule_is_skipped(db, tenant, customer):
    service = RecurringInvoiceService(db)
    schedule = await service.create_recurring_invoice(
        tenant.id, ADMIN_USER, schedule_request(customer, frequency=RecurringFrequency.WEEKLY),
    )
    await service.toggle_active(schedule.id, tenant.id, False)

    assert await service.process_due_invoices(tenant.id, today=date(2026, 3, 1)) == []
    assert schedule.next_invoice_date == date(2026, 1, 31)


async def test_failing_schedule_does_not_discard_the_others(db, tenant, customer, monkeypatch):
    service = RecurringInvoiceService(db)
    weekly = await service.create_recurring_invoice(
        tenant.id, ADMIN_USER,
        schedule_request(customer, frequency=RecurringFrequency.WEEKLY, start_date=date(2026, 1, 10)),
    )
    monthly = await service.create_recurring_invoice(tenant.id, ADMIN_USER, schedule_request(customer))
    await db.commit()

    next_date = recurring_module.calculate_next_invoice_date

    def weekly_breaks(current, frequency):
        if frequency == RecurringFrequency.WEEKLY.value:
            raise RuntimeError("calendar unavailable")
        return next_date(current, frequency)

    monkeypatch.setattr(recurring_module, "calculate_next_invoice_date", weekly_breaks)

    generated = await service.process_due_invoices(tenant.id, today=date(2026, 2, 1))
    assert len(generated) == 1
    await db.commit()

    invoices = (await db.execute(select(Invoice).where(Invoice.tenant_id == tenant.id))).scalars().all()
    assert [i.invoice_number for i in invoices] == [generated[0].invoice_number]

    await db.refresh(weekly)
    await db.refresh(monthly)
    assert (weekly.invoices_generated, weekly.next_invoice_date) == (0, date(2026, 1, 10))
    assert (monthly.invoices_generated, monthly.next_invoice_date) == (1, date(2026, 2, 28))


def test_schedule_needs_store_and_counter():
    with pytest.raises(SchemaValidationError):
        RecurringInvoiceCreate(
            customer_id=uuid.uuid4(), frequency=RecurringFrequency.MONTHLY,
            start_date=date(2026, 1, 1), amount=Decimal("10"), store_id="",
        )
    with pytest.raises(SchemaValidationError):
        RecurringInvoiceCreate(
            customer_id=uuid.uuid4(), frequency=RecurringFrequency.MONTHLY,
            start_date=date(2026, 1, 1), amount=Decimal("10"), counter_id="",
        )
