"""Invoice lifecycle against the service layer."""
import re
import uuid
from decimal import Decimal

import pytest

from retailbill.core.exceptions import BusinessError, IllegalStateError, NotFoundError
from retailbill.models.document_sequence import DocumentSequence
from retailbill.models.inventory import MovementType
from retailbill.models.invoice import Invoice, InvoiceItem, InvoiceStatus, PaymentMode
from retailbill.models.side_effect import SideEffectStatus, SideEffectType
from retailbill.schemas.customer import CustomerCreate
from retailbill.schemas.inventory import ProductCreate
from retailbill.schemas.invoice import InvoiceCreate, InvoiceItemCreate, PaymentCreate
from retailbill.services.customer_service import CustomerService
from retailbill.services.inventory_service import InventoryService
from retailbill.services.invoice_service import InvoiceService
from retailbill.services.side_effect_service import SideEffectService

from helpers import ADMIN_USER, money

STORE = "STORE-1"


@pytest.fixture
async def product(db, tenant):
    return await InventoryService(db).create_product(
        tenant.id,
        ProductCreate(name="Notebook", sku="NB-100", unit_price=Decimal("50"), tax_rate=Decimal("10")),
    )


async def receive(db, tenant, product, quantity):
    await InventoryService(db).record_movement(
        tenant.id, product.id, STORE, MovementType.IN, quantity, reference_type="RECEIPT",
    )


def sale(*items, **fields) -> InvoiceCreate:
    return InvoiceCreate(store_id=STORE, counter_id="C1", items=list(items), **fields)


def notebook_line(product, quantity=2, **fields) -> InvoiceItemCreate:
    fields.setdefault("tax_amount", Decimal("5"))
    return InvoiceItemCreate(
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        unit_price=Decimal("50"),
        **fields,
    )


async def test_create_computes_totals_and_number(db, tenant, product):
    service = InvoiceService(db)
    invoice = await service.create_invoice(
        tenant.id, ADMIN_USER,
        sale(notebook_line(product), InvoiceItemCreate(product_name="Pen", quantity=2, unit_price=Decimal("50"), tax_amount=Decimal("5"))),
    )

    assert invoice.status == InvoiceStatus.DRAFT.value
    fy = DocumentSequence.get_financial_year()
    assert invoice.invoice_number == f"INV/{fy}/0001"
    assert [i.line_total for i in invoice.items] == [money("105"), money("105")]
    assert invoice.subtotal == money("210")
    assert invoice.tax_amount == money("10")
    assert invoice.total_amount == invoice.subtotal + invoice.tax_amount - invoice.discount_amount

    second = await service.create_invoice(tenant.id, ADMIN_USER, sale(notebook_line(product)))
    assert second.invoice_number == f"INV/{fy}/0002"
    assert re.fullmatch(r"INV/\d{4}-\d{2}/\d{4}", second.invoice_number)


async def test_totals_invariant_survives_reload(db, tenant):
    invoice = Invoice(
        tenant_id=tenant.id,
        invoice_number="INV/TEST/0001",
        store_id=STORE,
        counter_id="C1",
        created_by=ADMIN_USER,
        items=[],
        payments=[],
    )
    item = InvoiceItem(
        tenant_id=tenant.id,
        product_name="Loose rice",
        quantity=1,
        unit_price=Decimal("10.000"),
        discount_amount=Decimal("0.004"),
        tax_amount=Decimal("0.006"),
    )
    item.calculate_line_total()
    invoice.add_item(item)
    invoice.calculate_totals()
    db.add(invoice)
    await db.commit()

    stored = await InvoiceService(db).get_invoice(invoice.id, tenant.id)
    await db.refresh(stored)

    assert stored.total_amount == stored.subtotal + stored.tax_amount - stored.discount_amount
    assert (stored.subtotal, stored.tax_amount, stored.total_amount) == (money("10.01"), money("0.01"), money("10.02"))


async def test_complete_records_payments_and_deducts_stock(db, tenant, product):
    await receive(db, tenant, product, 10)
    service = InvoiceService(db)
    invoice = await service.create_invoice(tenant.id, ADMIN_USER, sale(notebook_line(product, quantity=3)))

    completed = await service.complete_invoice(
        invoice.id, tenant.id, ADMIN_USER,
        [PaymentCreate(mode=PaymentMode.CASH, amount=Decimal("50"))],
    )

    assert completed.status == InvoiceStatus.COMPLETED.value
    assert completed.completed_by == ADMIN_USER
    assert completed.paid_amount == money("50")
    assert completed.balance_amount == completed.total_amount - money("50")

    stock = await InventoryService(db).get_stock(tenant.id, product.id, STORE)
    assert stock.quantity == 7
    assert await SideEffectService(db).list_effects(tenant.id) == []


async def test_complete_without_stock_queues_deduction(db, tenant, product):
    service = InvoiceService(db)
    invoice = await service.create_invoice(tenant.id, ADMIN_USER, sale(notebook_line(product)))

    completed = await service.complete_invoice(invoice.id, tenant.id, ADMIN_USER, [])

    assert completed.status == InvoiceStatus.COMPLETED.value
    effects = await SideEffectService(db).list_effects(tenant.id)
    assert len(effects) == 1
    assert effects[0].effect_type == SideEffectType.STOCK_DEDUCT.value
    assert effects[0].status == SideEffectStatus.PENDING.value
    assert effects[0].reference == invoice.invoice_number

    # stock arrives later, the retry job catches up
    await receive(db, tenant, product, 5)
    stats = await SideEffectService(db).retry_pending(tenant.id)
    assert stats == {"done": 1, "retried": 0, "failed": 0}
    stock = await InventoryService(db).get_stock(tenant.id, product.id, STORE)
    assert stock.quantity == 3


async def test_retry_gives_up_after_max_attempts(db, tenant, product):
    service = InvoiceService(db)
    invoice = await service.create_invoice(tenant.id, ADMIN_USER, sale(notebook_line(product)))
    await service.complete_invoice(invoice.id, tenant.id, ADMIN_USER, [])

    side_effects = SideEffectService(db)
    assert await side_effects.retry_pending(tenant.id, max_attempts=3) == {"done": 0, "retried": 1, "failed": 0}
    assert await side_effects.retry_pending(tenant.id, max_attempts=3) == {"done": 0, "retried": 0, "failed": 1}

    effect = (await side_effects.list_effects(tenant.id))[0]
    assert effect.status == SideEffectStatus.FAILED.value
    assert effect.attempts == 3


async def test_complete_twice_is_rejected(db, tenant, product):
    service = InvoiceService(db)
    invoice = await service.create_invoice(tenant.id, ADMIN_USER, sale(notebook_line(product)))
    await service.complete_invoice(invoice.id, tenant.id, ADMIN_USER, [])

    with pytest.raises(IllegalStateError):
        await service.complete_invoice(invoice.id, tenant.id, ADMIN_USER, [])


async def test_cancel_draft_is_rejected(db, tenant, product):
    service = InvoiceService(db)
    invoice = await service.create_invoice(tenant.id, ADMIN_USER, sale(notebook_line(product)))

    with pytest.raises(IllegalStateError, match="Only completed invoices can be cancelled"):
        await service.cancel_invoice(invoice.id, tenant.id, ADMIN_USER, "typo")
    assert invoice.status == InvoiceStatus.DRAFT.value


async def test_cancel_returns_stock_and_notes_reason(db, tenant, product):
    await receive(db, tenant, product, 10)
    service = InvoiceService(db)
    invoice = await service.create_invoice(tenant.id, ADMIN_USER, sale(notebook_line(product, quantity=4)))
    await service.complete_invoice(invoice.id, tenant.id, ADMIN_USER, [])

    cancelled = await service.cancel_invoice(invoice.id, tenant.id, ADMIN_USER, "customer left")

    assert cancelled.status == InvoiceStatus.CANCELLED.value
    assert "Reason: customer left" in cancelled.notes
    stock = await InventoryService(db).get_stock(tenant.id, product.id, STORE)
    assert stock.quantity == 10


async def test_return_restores_only_selected_items(db, tenant, product):
    other = await InventoryService(db).create_product(
        tenant.id, ProductCreate(name="Eraser", sku="ER-1", unit_price=Decimal("5")),
    )
    await receive(db, tenant, product, 10)
    await receive(db, tenant, other, 10)

    service = InvoiceService(db)
    invoice = await service.create_invoice(
        tenant.id, ADMIN_USER,
        sale(
            notebook_line(product, quantity=2),
            InvoiceItemCreate(product_id=other.id, product_name="Eraser", quantity=3, unit_price=Decimal("5")),
        ),
    )
    await service.complete_invoice(invoice.id, tenant.id, ADMIN_USER, [])

    returned = await service.process_return(
        invoice.id, tenant.id, ADMIN_USER, [invoice.items[0].id], "damaged",
    )

    assert returned.status == InvoiceStatus.RETURNED.value
    inventory = InventoryService(db)
    assert (await inventory.get_stock(tenant.id, product.id, STORE)).quantity == 10
    assert (await inventory.get_stock(tenant.id, other.id, STORE)).quantity == 7


async def test_interstate_customer_gets_igst(db, tenant):
    customer = await CustomerService(db).create_customer(
        tenant.id, CustomerCreate(name="Ravi", phone="9876543210", state="Tamil Nadu"),
    )
    invoice = await InvoiceService(db).create_invoice(
        tenant.id, ADMIN_USER,
        sale(
            InvoiceItemCreate(product_name="Service", quantity=1, unit_price=Decimal("1000"), tax_rate=Decimal("18")),
            customer_id=customer.id,
        ),
    )

    assert invoice.is_interstate
    assert invoice.place_of_supply == "Tamil Nadu"
    assert invoice.customer_name == "Ravi"
    assert invoice.total_igst == money("180")
    assert invoice.total_cgst == 0


async def test_local_sale_splits_cgst_and_sgst(db, tenant):
    invoice = await InvoiceService(db).create_invoice(
        tenant.id, ADMIN_USER,
        sale(
            InvoiceItemCreate(product_name="Service", quantity=1, unit_price=Decimal("1000"), tax_rate=Decimal("18")),
            place_of_supply="Karnataka",
        ),
    )
    assert not invoice.is_interstate
    assert invoice.total_cgst == invoice.total_sgst == money("90")


async def test_completion_updates_customer_stats(db, tenant):
    customer = await CustomerService(db).create_customer(
        tenant.id, CustomerCreate(name="Asha", phone="9000000001", state="Karnataka"),
    )
    service = InvoiceService(db)
    invoice = await service.create_invoice(
        tenant.id, ADMIN_USER,
        sale(InvoiceItemCreate(product_name="Tea", quantity=1, unit_price=Decimal("100")), customer_id=customer.id),
    )
    await service.complete_invoice(invoice.id, tenant.id, ADMIN_USER, [])

    assert customer.visit_count == 1
    assert customer.total_spent == money("100")
    assert customer.loyalty_points == 1


async def test_wallet_payment_debits_customer_wallet(db, tenant):
    customers = CustomerService(db)
    customer = await customers.create_customer(
        tenant.id, CustomerCreate(name="Leela", phone="9000000002", state="Karnataka"),
    )
    await customers.add_to_wallet(customer.id, tenant.id, Decimal("60"))
    service = InvoiceService(db)
    short = await service.create_invoice(
        tenant.id, ADMIN_USER,
        sale(InvoiceItemCreate(product_name="Tea", quantity=1, unit_price=Decimal("100")), customer_id=customer.id),
    )
    with pytest.raises(BusinessError) as exc:
        await service.complete_invoice(
            short.id, tenant.id, ADMIN_USER, [PaymentCreate(mode=PaymentMode.WALLET, amount=Decimal("100"))],
        )
    assert exc.value.error_code == "INSUFFICIENT_WALLET_BALANCE"
    assert short.status == InvoiceStatus.DRAFT.value
    assert customer.wallet_balance == money("60")

    completed = await service.complete_invoice(
        short.id, tenant.id, ADMIN_USER,
        [
            PaymentCreate(mode=PaymentMode.WALLET, amount=Decimal("60")),
            PaymentCreate(mode=PaymentMode.CASH, amount=Decimal("40")),
        ],
    )
    assert completed.balance_amount == 0
    assert customer.wallet_balance == money("0")


async def test_wallet_payment_needs_a_customer(db, tenant):
    service = InvoiceService(db)
    invoice = await service.create_invoice(
        tenant.id, ADMIN_USER, sale(InvoiceItemCreate(product_name="Tea", quantity=1, unit_price=Decimal("10"))),
    )
    with pytest.raises(BusinessError) as exc:
        await service.complete_invoice(
            invoice.id, tenant.id, ADMIN_USER, [PaymentCreate(mode=PaymentMode.WALLET, amount=Decimal("10"))],
        )
    assert exc.value.error_code == "WALLET_CUSTOMER_REQUIRED"


async def test_hold_list_resume_and_delete(db, tenant):
    service = InvoiceService(db)
    request = sale(
        InvoiceItemCreate(product_name="Soap", quantity=4, unit_price=Decimal("25"), tax_rate=Decimal("5")),
        customer_name="Walk-in",
    )

    reference = await service.hold_invoice(tenant.id, ADMIN_USER, request)
    assert reference.startswith("HOLD-")

    held = await service.list_held_invoices(tenant.id)
    assert len(held) == 1
    assert held[0].item_count == 1
    assert held[0].total_amount == money("105")
    assert held[0].customer_name == "Walk-in"

    resumed = await service.resume_held_invoice(tenant.id, reference)
    assert resumed == request
    assert len(await service.list_held_invoices(tenant.id)) == 1

    await service.delete_held_invoice(tenant.id, reference)
    assert await service.list_held_invoices(tenant.id) == []
    with pytest.raises(NotFoundError):
        await service.resume_held_invoice(tenant.id, reference)


async def test_lookup_by_number_and_sales_summary(db, tenant):
    service = InvoiceService(db)
    draft = await service.create_invoice(
        tenant.id, ADMIN_USER, sale(InvoiceItemCreate(product_name="A", quantity=1, unit_price=Decimal("40"))),
    )
    done = await service.create_invoice(
        tenant.id, ADMIN_USER, sale(InvoiceItemCreate(product_name="B", quantity=2, unit_price=Decimal("30"))),
    )
    await service.complete_invoice(
        done.id, tenant.id, ADMIN_USER, [PaymentCreate(mode=PaymentMode.UPI, amount=Decimal("60"))],
    )

    found = await service.get_invoice_by_number(tenant.id, draft.invoice_number)
    assert found.id == draft.id

    summary = await service.get_sales_summary(tenant.id)
    assert summary.invoice_count == 1
    assert summary.total_amount == money("60")
    assert summary.paid_amount == money("60")
    assert summary.balance_amount == money("0")


async def test_other_tenant_invoice_is_not_found(db, tenant, product):
    invoice = await InvoiceService(db).create_invoice(tenant.id, ADMIN_USER, sale(notebook_line(product)))
    with pytest.raises(NotFoundError):
        await InvoiceService(db).get_invoice(invoice.id, uuid.uuid4())
