"""
Invoice Service

Drives invoices through DRAFT -> COMPLETED -> CANCELLED | RETURNED.

Stock is advisory for billing:
- an availability shortfall at creation is logged, never blocking
- stock deduction on completion and reversal on cancel/return go through the
  side-effect outbox, so a stock failure never rolls back the sale

WALLET payments debit the customer's store wallet on completion and are
refused when the wallet cannot cover them.
"""
import logging
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from retailbill.core.exceptions import BusinessError, NotFoundError
from retailbill.core.tenant_context import tenant_select, get_for_tenant, get_by_field
from retailbill.db_types import utcnow
from retailbill.models.customer import Customer
from retailbill.models.invoice import (
    DiscountType, HeldInvoice, Invoice, InvoiceItem, InvoiceStatus, Payment, PaymentMode,
)
from retailbill.models.side_effect import SideEffectType
from retailbill.models.tenant import Tenant
from retailbill.schemas.invoice import (
    HeldInvoiceResponse,
    InvoiceCreate,
    InvoiceItemCreate,
    PaymentCreate,
    SalesSummaryResponse,
)
from retailbill.services.customer_service import debit_wallet, ensure_wallet_covers, record_purchase
from retailbill.services.document_sequence_service import DocumentSequenceService
from retailbill.services.gst_service import ensure_valid_gstin, is_interstate_supply
from retailbill.services.inventory_service import InventoryService
from retailbill.services.invoice_state_machine import transition_invoice
from retailbill.services.side_effect_service import SideEffectService, stock_payload

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

INVOICE_LOAD_OPTIONS = (
    selectinload(Invoice.items),
    selectinload(Invoice.payments),
)


def build_invoice_item(tenant_id: uuid.UUID, data: InvoiceItemCreate, is_interstate: bool) -> InvoiceItem:
    """Build an item and compute its tax and line total."""
    cgst_rate, sgst_rate, igst_rate = data.cgst_rate, data.sgst_rate, data.igst_rate
    has_split_rates = any(r is not None for r in (cgst_rate, sgst_rate, igst_rate, data.cess_rate))
    if not has_split_rates and data.tax_rate:
        # A single GST rate splits evenly into CGST and SGST
        igst_rate = data.tax_rate
        cgst_rate = sgst_rate = data.tax_rate / 2

    item = InvoiceItem(
        tenant_id=tenant_id,
        product_id=data.product_id,
        product_name=data.product_name,
        product_code=data.product_code,
        barcode=data.barcode,
        quantity=data.quantity,
        unit_price=data.unit_price,
        discount_amount=data.discount_amount or ZERO,
        discount_type=data.discount_type.value if data.discount_type else None,
        discount_value=data.discount_value,
        tax_rate=data.tax_rate,
        hsn_code=data.hsn_code,
        sac_code=data.sac_code,
        cgst_rate=cgst_rate or ZERO,
        sgst_rate=sgst_rate or ZERO,
        igst_rate=igst_rate or ZERO,
        cess_rate=data.cess_rate or ZERO,
        cgst_amount=ZERO,
        sgst_amount=ZERO,
        igst_amount=ZERO,
        cess_amount=ZERO,
        tax_amount=ZERO,
        notes=data.notes,
    )

    if data.tax_amount is not None:
        item.tax_amount = data.tax_amount
    elif has_split_rates or data.tax_rate:
        item.calculate_gst(is_interstate)

    item.calculate_line_total()
    return item


def held_invoice_total(request: InvoiceCreate) -> Decimal:
    """Estimated total of a held request: gross less discount plus tax at tax_rate."""
    total = ZERO
    for item in request.items:
        gross = item.unit_price * item.quantity
        discount = ZERO
        if item.discount_type is not None and item.discount_value is not None:
            if item.discount_type == DiscountType.PERCENTAGE:
                discount = gross * item.discount_value / HUNDRED
            else:
                discount = item.discount_value * item.quantity
        taxable = gross - discount
        tax = taxable * (item.tax_rate or ZERO) / HUNDRED
        total += taxable + tax
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


class InvoiceService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)
        self.side_effects = SideEffectService(db)
        self.sequences = DocumentSequenceService(db)

    # ==================== Lifecycle ====================

    async def create_invoice(
        self,
        tenant_id: uuid.UUID,
        user_id: str,
        data: InvoiceCreate,
    ) -> Invoice:
        for item_data in data.items:
            if item_data.product_id is None:
                continue
            available = await self.inventory.check_availability(
                tenant_id, item_data.product_id, data.store_id, item_data.quantity
            )
            if not available:
                # Advisory only: overselling is allowed (backorder)
                logger.warning(
                    f"Insufficient stock for product: {item_data.product_name} at location: {data.store_id}"
                )

        tenant = await self.db.get(Tenant, tenant_id)
        customer = None
        if data.customer_id:
            customer = await get_for_tenant(self.db, Customer, tenant_id, data.customer_id, "Customer")

        place_of_supply = data.place_of_supply or (customer.state if customer else None)
        supplier_state = tenant.state if tenant else None
        is_interstate = bool(supplier_state and place_of_supply) and is_interstate_supply(
            supplier_state, place_of_supply
        )

        invoice = Invoice(
            tenant_id=tenant_id,
            invoice_number=await self.sequences.next_invoice_number(tenant_id),
            status=InvoiceStatus.DRAFT.value,
            store_id=data.store_id,
            counter_id=data.counter_id,
            customer_id=data.customer_id,
            customer_name=data.customer_name or (customer.name if customer else None),
            customer_phone=data.customer_phone or (customer.phone if customer else None),
            customer_email=data.customer_email or (customer.email if customer else None),
            customer_gstin=ensure_valid_gstin(data.customer_gstin or (customer.gstin if customer else None)),
            supplier_gstin=tenant.gstin if tenant else None,
            place_of_supply=place_of_supply,
            is_interstate=is_interstate,
            reverse_charge=data.reverse_charge,
            notes=data.notes,
            created_by=user_id,
            items=[],
            payments=[],
        )

        for item_data in data.items:
            invoice.add_item(build_invoice_item(tenant_id, item_data, is_interstate))

        invoice.calculate_totals()
        self.db.add(invoice)
        await self.db.flush()

        logger.info(f"Invoice created: {invoice.invoice_number} with {len(invoice.items)} items")
        return invoice

    async def complete_invoice(
        self,
        invoice_id: uuid.UUID,
        tenant_id: uuid.UUID,
        user_id: str,
        payments: List[PaymentCreate],
    ) -> Invoice:
        invoice = await self._load(invoice_id, tenant_id, for_update=True)

        wallet_amount = sum(
            (p.amount for p in payments if p.mode == PaymentMode.WALLET), ZERO
        )
        wallet_customer = None
        if wallet_amount > 0:
            wallet_customer = await self._wallet_customer(tenant_id, invoice)
            ensure_wallet_covers(wallet_customer, wallet_amount)

        transition_invoice(invoice, InvoiceStatus.COMPLETED, "Only draft invoices can be completed")

        if wallet_customer is not None:
            debit_wallet(wallet_customer, wallet_amount)
            logger.info(f"Debited {wallet_amount} from wallet of customer {wallet_customer.id}")

        for payment_data in payments:
            payment = Payment(tenant_id=tenant_id, **payment_data.model_dump(exclude={"mode"}))
            payment.mode = payment_data.mode.value
            invoice.add_payment(payment)

        invoice.calculate_totals()
        if invoice.balance_amount > 0:
            # Credit sale: completion is allowed with an outstanding balance
            logger.warning(
                f"Invoice {invoice.invoice_number} completed with pending balance: {invoice.balance_amount}"
            )

        invoice.completed_by = user_id
        invoice.completed_at = utcnow()
        await self.db.flush()

        for item in invoice.items:
            if item.product_id is None:
                continue
            await self.side_effects.perform(
                tenant_id,
                SideEffectType.STOCK_DEDUCT,
                stock_payload(item.product_id, invoice.store_id, item.quantity, invoice.invoice_number, user_id),
                reference=invoice.invoice_number,
            )

        if invoice.customer_id:
            await self._record_customer_visit(tenant_id, invoice)

        logger.info(f"Invoice completed: {invoice.invoice_number} with total amount: {invoice.total_amount}")
        return invoice

    async def cancel_invoice(
        self,
        invoice_id: uuid.UUID,
        tenant_id: uuid.UUID,
        user_id: str,
        reason: str,
    ) -> Invoice:
        invoice = await self._load(invoice_id, tenant_id, for_update=True)
        transition_invoice(invoice, InvoiceStatus.CANCELLED, "Only completed invoices can be cancelled")
        invoice.append_note(f"Cancelled by: {user_id}, Reason: {reason}")
        await self.db.flush()

        for item in invoice.items:
            if item.product_id is None:
                continue
            await self.side_effects.perform(
                tenant_id,
                SideEffectType.STOCK_REVERSE,
                stock_payload(item.product_id, invoice.store_id, item.quantity, invoice.invoice_number, user_id),
                reference=invoice.invoice_number,
            )

        logger.info(f"Invoice cancelled: {invoice.invoice_number} by user: {user_id}, reason: {reason}")
        return invoice

    async def process_return(
        self,
        invoice_id: uuid.UUID,
        tenant_id: uuid.UUID,
        user_id: str,
        item_ids: List[uuid.UUID],
        reason: str,
    ) -> Invoice:
        """Mark the invoice RETURNED and put back stock for the named items only."""
        invoice = await self._load(invoice_id, tenant_id, for_update=True)
        transition_invoice(invoice, InvoiceStatus.RETURNED, "Only completed invoices can have returns")
        invoice.append_note(f"Return processed by: {user_id}, Reason: {reason}")
        await self.db.flush()

        returned = {str(i) for i in item_ids}
        reference = f"{invoice.invoice_number}-RTN"
        for item in invoice.items:
            if str(item.id) not in returned or item.product_id is None:
                continue
            await self.side_effects.perform(
                tenant_id,
                SideEffectType.STOCK_REVERSE,
                stock_payload(item.product_id, invoice.store_id, item.quantity, reference, user_id),
                reference=reference,
            )

        logger.info(f"Return processed for invoice: {invoice.invoice_number} with {len(item_ids)} items")
        return invoice

    async def add_payment(
        self,
        invoice: Invoice,
        payment: Payment,
    ) -> Invoice:
        """Append a payment to an already loaded invoice and recompute totals."""
        invoice.add_payment(payment)
        invoice.calculate_totals()
        await self.db.flush()
        return invoice

    async def _record_customer_visit(self, tenant_id: uuid.UUID, invoice: Invoice) -> None:
        customer = await get_by_field(self.db, Customer, tenant_id, Customer.id, invoice.customer_id)
        if customer is None:
            return
        points = record_purchase(customer, invoice.total_amount, invoice.completed_at)
        await self.db.flush()
        logger.info(f"Customer {customer.id} earned {points} loyalty points on {invoice.invoice_number}")

    async def _wallet_customer(self, tenant_id: uuid.UUID, invoice: Invoice) -> Customer:
        if invoice.customer_id is None:
            raise BusinessError(
                "Wallet payments need a customer on the invoice",
                error_code="WALLET_CUSTOMER_REQUIRED",
            )
        return await get_for_tenant(
            self.db, Customer, tenant_id, invoice.customer_id, "Customer", for_update=True
        )

    # ==================== Held invoices ====================

    async def hold_invoice(self, tenant_id: uuid.UUID, user_id: str, data: InvoiceCreate) -> str:
        hold_reference = "HOLD-" + uuid.uuid4().hex[:8].upper()
        held = HeldInvoice(
            tenant_id=tenant_id,
            store_id=data.store_id,
            counter_id=data.counter_id,
            hold_reference=hold_reference,
            invoice_data=data.model_dump(mode="json"),
            held_by=user_id,
            notes=data.notes,
        )
        self.db.add(held)
        await self.db.flush()
        logger.info(f"Invoice held: {hold_reference} by user: {user_id}")
        return hold_reference

    async def list_held_invoices(self, tenant_id: uuid.UUID) -> List[HeldInvoiceResponse]:
        result = await self.db.execute(
            tenant_select(HeldInvoice, tenant_id).order_by(HeldInvoice.held_at.desc())
        )
        responses = []
        for held in result.scalars().all():
            request = InvoiceCreate.model_validate(held.invoice_data)
            responses.append(
                HeldInvoiceResponse(
                    hold_reference=held.hold_reference,
                    store_id=held.store_id,
                    counter_id=held.counter_id,
                    customer_name=request.customer_name,
                    customer_phone=request.customer_phone,
                    item_count=len(request.items),
                    total_amount=held_invoice_total(request),
                    held_by=held.held_by,
                    held_at=held.held_at,
                    notes=held.notes,
                )
            )
        return responses

    async def _get_held(self, tenant_id: uuid.UUID, hold_reference: str) -> HeldInvoice:
        held = await get_by_field(self.db, HeldInvoice, tenant_id, HeldInvoice.hold_reference, hold_reference)
        if held is None:
            raise NotFoundError("Held invoice not found", error_code="NOT_FOUND")
        return held

    async def resume_held_invoice(self, tenant_id: uuid.UUID, hold_reference: str) -> InvoiceCreate:
        """Return the original request. The held record stays until deleted."""
        held = await self._get_held(tenant_id, hold_reference)
        logger.info(f"Resuming held invoice: {hold_reference}")
        return InvoiceCreate.model_validate(held.invoice_data)

    async def delete_held_invoice(self, tenant_id: uuid.UUID, hold_reference: str) -> None:
        held = await self._get_held(tenant_id, hold_reference)
        await self.db.delete(held)
        await self.db.flush()
        logger.info(f"Deleted held invoice: {hold_reference}")

    # ==================== Queries ====================

    async def _load(self, invoice_id: uuid.UUID, tenant_id: uuid.UUID, for_update: bool = False) -> Invoice:
        return await get_for_tenant(
            self.db, Invoice, tenant_id, invoice_id, "Invoice",
            options=INVOICE_LOAD_OPTIONS,
            for_update=for_update,
        )

    async def get_invoice(self, invoice_id: uuid.UUID, tenant_id: uuid.UUID) -> Invoice:
        return await self._load(invoice_id, tenant_id)

    async def get_invoice_by_number(self, tenant_id: uuid.UUID, invoice_number: str) -> Invoice:
        invoice = await get_by_field(
            self.db, Invoice, tenant_id, Invoice.invoice_number, invoice_number,
            options=INVOICE_LOAD_OPTIONS,
        )
        if invoice is None:
            raise NotFoundError(f"Invoice not found: {invoice_number}", error_code="NOT_FOUND")
        return invoice

    async def list_invoices(
        self,
        tenant_id: uuid.UUID,
        status: Optional[InvoiceStatus] = None,
        customer_id: Optional[uuid.UUID] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Invoice], int]:
        criteria = []
        if status:
            criteria.append(Invoice.status == status.value)
        if customer_id:
            criteria.append(Invoice.customer_id == customer_id)
        if from_date:
            criteria.append(Invoice.created_at >= from_date)
        if to_date:
            criteria.append(Invoice.created_at <= to_date)

        total = (
            await self.db.execute(
                select(func.count(Invoice.id)).where(Invoice.tenant_id == tenant_id, *criteria)
            )
        ).scalar() or 0

        result = await self.db.execute(
            tenant_select(Invoice, tenant_id, *criteria)
            .order_by(Invoice.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_sales_summary(
        self,
        tenant_id: uuid.UUID,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> SalesSummaryResponse:
        """Totals over COMPLETED invoices, by completion time."""
        stmt = select(
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.total_amount), 0),
            func.coalesce(func.sum(Invoice.tax_amount), 0),
            func.coalesce(func.sum(Invoice.discount_amount), 0),
            func.coalesce(func.sum(Invoice.paid_amount), 0),
            func.coalesce(func.sum(Invoice.balance_amount), 0),
        ).where(
            Invoice.tenant_id == tenant_id,
            Invoice.status == InvoiceStatus.COMPLETED.value,
        )
        if from_date:
            stmt = stmt.where(Invoice.completed_at >= from_date)
        if to_date:
            stmt = stmt.where(Invoice.completed_at <= to_date)

        count, total, tax, discount, paid, balance = (await self.db.execute(stmt)).one()
        return SalesSummaryResponse(
            from_date=from_date,
            to_date=to_date,
            invoice_count=count or 0,
            total_amount=Decimal(str(total)).quantize(CENT),
            tax_amount=Decimal(str(tax)).quantize(CENT),
            discount_amount=Decimal(str(discount)).quantize(CENT),
            paid_amount=Decimal(str(paid)).quantize(CENT),
            balance_amount=Decimal(str(balance)).quantize(CENT),
        )
