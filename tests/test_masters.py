"""Customers, suppliers, stock and configuration lookups."""
from decimal import Decimal

import pytest

from retailbill.core.exceptions import BusinessError, NotFoundError, ValidationError
from retailbill.models.inventory import AdjustmentType, MovementType
from retailbill.schemas.configuration import SystemConfigurationCreate, SystemConfigurationUpdate
from retailbill.schemas.customer import CustomerCreate, CustomerUpdate, SupplierCreate, SupplierUpdate
from retailbill.schemas.inventory import ProductCreate
from retailbill.services.configuration_service import ConfigurationService
from retailbill.services.customer_service import CustomerService, SupplierService
from retailbill.services.inventory_service import InventoryService

from helpers import money


# ==================== Customers ====================

async def test_customer_phone_is_unique_per_tenant(db, tenant):
    service = CustomerService(db)
    first = await service.create_customer(tenant.id, CustomerCreate(name="Asha", phone="9800000001"))
    await service.create_customer(tenant.id, CustomerCreate(name="Ravi", phone="9800000002"))

    with pytest.raises(BusinessError) as exc:
        await service.create_customer(tenant.id, CustomerCreate(name="Asha again", phone="9800000001"))
    assert exc.value.error_code == "DUPLICATE_PHONE"

    with pytest.raises(BusinessError):
        await service.update_customer(first.id, tenant.id, CustomerUpdate(phone="9800000002"))


async def test_customer_gstin_is_normalized_or_rejected(db, tenant):
    service = CustomerService(db)
    customer = await service.create_customer(
        tenant.id, CustomerCreate(name="Traders", phone="9800000003", gstin="29abcde1234f1z5"),
    )
    assert customer.gstin == "29ABCDE1234F1Z5"

    with pytest.raises(ValidationError):
        await service.update_customer(customer.id, tenant.id, CustomerUpdate(gstin="29ABCDE"))


async def test_customer_search_and_soft_delete(db, tenant):
    service = CustomerService(db)
    await service.create_customer(tenant.id, CustomerCreate(name="Meena Stores", phone="9800000010"))
    gone = await service.create_customer(tenant.id, CustomerCreate(name="Mohan", phone="9811111111"))

    customers, total = await service.list_customers(tenant.id, search="98000")
    assert total == 1
    assert customers[0].name == "Meena Stores"

    await service.delete_customer(gone.id, tenant.id)
    customers, total = await service.list_customers(tenant.id, active_only=True)
    assert [c.name for c in customers] == ["Meena Stores"]
    assert (await service.get_customer(gone.id, tenant.id)).is_active is False


async def test_wallet_top_up_and_deduction(db, tenant):
    service = CustomerService(db)
    customer = await service.create_customer(tenant.id, CustomerCreate(name="Kavya", phone="9800000020"))

    await service.add_to_wallet(customer.id, tenant.id, Decimal("150"))
    await service.deduct_from_wallet(customer.id, tenant.id, Decimal("100"))
    assert customer.wallet_balance == money("50")

    with pytest.raises(BusinessError) as exc:
        await service.deduct_from_wallet(customer.id, tenant.id, Decimal("50.01"))
    assert exc.value.message == "Insufficient wallet balance"
    assert customer.wallet_balance == money("50")

    with pytest.raises(ValidationError):
        await service.add_to_wallet(customer.id, tenant.id, Decimal("0"))


async def test_purchases_earn_points_that_redeem_into_wallet(db, tenant):
    service = CustomerService(db)
    customer = await service.create_customer(tenant.id, CustomerCreate(name="Farah", phone="9800000021"))

    await service.record_purchase(customer.id, tenant.id, Decimal("1250.50"))
    await service.record_purchase(customer.id, tenant.id, Decimal("99.99"))
    assert customer.loyalty_points == 12
    assert customer.visit_count == 2
    assert customer.total_spent == money("1350.49")

    await service.redeem_loyalty_points(customer.id, tenant.id, 10)
    assert customer.loyalty_points == 2
    assert customer.wallet_balance == money("0.10")

    with pytest.raises(BusinessError) as exc:
        await service.redeem_loyalty_points(customer.id, tenant.id, 3)
    assert exc.value.error_code == "INSUFFICIENT_LOYALTY_POINTS"
    assert customer.loyalty_points == 2


# ==================== Suppliers ====================

async def test_supplier_lifecycle(db, tenant):
    service = SupplierService(db)
    supplier = await service.create_supplier(
        tenant.id, SupplierCreate(name="Paper Mills", contact_person="Kiran", phone="0801234567"),
    )
    assert supplier.payment_terms_days == 30

    await service.update_supplier(supplier.id, tenant.id, SupplierUpdate(payment_terms_days=45))
    assert [s.payment_terms_days for s in await service.list_suppliers(tenant.id, search="kiran")] == [45]

    with pytest.raises(ValidationError):
        await service.create_supplier(tenant.id, SupplierCreate(name="Bad", gstin="12345"))

    await service.delete_supplier(supplier.id, tenant.id)
    with pytest.raises(NotFoundError):
        await service.get_supplier(supplier.id, tenant.id)


# ==================== Stock ====================

@pytest.fixture
async def pencil(db, tenant):
    return await InventoryService(db).create_product(
        tenant.id,
        ProductCreate(name="Pencil", sku="PN-1", unit_price=Decimal("5"), reorder_level=5),
    )


async def test_duplicate_sku_is_a_business_rule(db, tenant, pencil):
    with pytest.raises(BusinessError) as exc:
        await InventoryService(db).create_product(
            tenant.id, ProductCreate(name="Pencil HB", sku="PN-1", unit_price=Decimal("6")),
        )
    assert exc.value.error_code == "DUPLICATE_SKU"
    assert exc.value.status_code == 422


async def test_movements_keep_running_quantities(db, tenant, pencil):
    service = InventoryService(db)
    await service.record_movement(tenant.id, pencil.id, "STORE-1", MovementType.IN, 10)
    movement = await service.record_movement(tenant.id, pencil.id, "STORE-1", MovementType.OUT, 4)

    assert (movement.previous_quantity, movement.new_quantity) == (10, 6)

    with pytest.raises(ValidationError) as exc:
        await service.record_movement(tenant.id, pencil.id, "STORE-1", MovementType.OUT, 7)
    assert exc.value.error_code == "INSUFFICIENT_STOCK"
    assert (await service.get_stock(tenant.id, pencil.id, "STORE-1")).quantity == 6


async def test_adjustments(db, tenant, pencil):
    service = InventoryService(db)
    await service.adjust_stock(tenant.id, pencil.id, "STORE-1", AdjustmentType.INCREASE, 8)
    await service.adjust_stock(tenant.id, pencil.id, "STORE-1", AdjustmentType.DECREASE, 2)
    movement = await service.adjust_stock(tenant.id, pencil.id, "STORE-1", AdjustmentType.SET, 20, reason="count")

    assert movement.movement_type == MovementType.ADJUSTMENT.value
    assert (movement.previous_quantity, movement.new_quantity) == (6, 20)


async def test_transfer_and_availability(db, tenant, pencil):
    service = InventoryService(db)
    await service.record_movement(tenant.id, pencil.id, "STORE-1", MovementType.IN, 10)

    outgoing, incoming = await service.transfer_stock(tenant.id, pencil.id, "STORE-1", "STORE-2", 7)

    assert outgoing.reference_id == incoming.reference_id
    assert await service.check_availability(tenant.id, pencil.id, "STORE-2", 7)
    assert not await service.check_availability(tenant.id, pencil.id, "STORE-1", 4)
    assert not await service.check_availability(tenant.id, pencil.id, "STORE-9", 1)

    low = await service.get_low_stock(tenant.id)
    assert [s.location_id for s in low] == ["STORE-1"]

    with pytest.raises(ValidationError):
        await service.transfer_stock(tenant.id, pencil.id, "STORE-1", "STORE-1", 1)


# ==================== Configuration ====================

async def test_tenant_value_overrides_system_value(db, tenant):
    service = ConfigurationService(db)
    await service.create_system_configuration(
        SystemConfigurationCreate(config_key="billing.max_items", config_value="50", value_type="INTEGER"),
    )

    assert await service.get_int_config("billing.max_items", tenant.id) == 50

    await service.set_tenant_configuration(tenant.id, "billing.max_items", "80")
    assert await service.get_int_config("billing.max_items", tenant.id) == 80
    assert await service.get_int_config("billing.max_items") == 50

    await service.set_tenant_configuration(tenant.id, "billing.max_items", "lots")
    assert await service.get_int_config("billing.max_items", tenant.id, default=7) == 7

    await service.delete_tenant_configuration(tenant.id, "billing.max_items")
    with pytest.raises(NotFoundError):
        await service.delete_tenant_configuration(tenant.id, "billing.max_items")


async def test_system_configuration_rules(db):
    service = ConfigurationService(db)
    await service.create_system_configuration(
        SystemConfigurationCreate(config_key="gst.enabled", config_value="yes", is_editable=False),
    )

    assert await service.get_bool_config("gst.enabled") is True
    assert await service.get_config_value("gst.missing", default="fallback") == "fallback"

    with pytest.raises(BusinessError, match="already exists"):
        await service.create_system_configuration(SystemConfigurationCreate(config_key="gst.enabled"))
    with pytest.raises(BusinessError, match="not editable"):
        await service.update_system_configuration("gst.enabled", SystemConfigurationUpdate(config_value="no"))
