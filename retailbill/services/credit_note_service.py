"""
Credit Note Service

Credit notes are raised against completed invoices and go through an
approval workflow:

    DRAFT -> PENDING_APPROVAL -> APPROVED -> ISSUED -> APPLIED

Any status except APPLIED can be cancelled. Issuing restocks flagged items
(through the side-effect outbox); applying settles the credit by the note's
application method.
"""
import logging
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from retailbill.core.exceptions import IllegalStateError, ValidationError
from retailbill.core.tenant_context import tenant_select, get_for_tenant, get_by_field
from retailbill.models.credit_note import (
    ApplicationMethod, CreditNote, CreditNoteItem, CreditNoteStatus,
)
from retailbill.models.customer import Customer
from retailbill.models.invoice import Invoice, InvoiceStatus, Payment, PaymentMode
from retailbill.models.side_effect import SideEffectType
from retailbill.schemas.credit_note import CreditNoteCreate, CreditNoteItemCreate, CreditNoteUpdate
from retailbill.services.document_sequence_service import DocumentSequenceService
from retailbill.services.invoice_service import INVOICE_LOAD_OPTIONS, InvoiceService
from retailbill.services.invoice_state_machine import transition_credit_note
from retailbill.services.side_effect_service import SideEffectService, stock_payload

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

CREDITABLE_INVOICE_STATUSES = (InvoiceStatus.COMPLETED.value, InvoiceStatus.RETURNED.value)


class CreditNoteService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)
        self.side_effects = SideEffectService(db)
        self.invoices = InvoiceService(db)

    def _build_items(
        self,
        tenant_id: uuid.UUID,
        invoice: Invoice,
        items: List[CreditNoteItemCreate],
    ) -> List[CreditNoteItem]:
        invoice_items = {str(i.id): i for i in invoice.items}
        built = []
        for data in items:
            source = None
            if data.invoice_item_id is not None:
                source = invoice_items.get(str(data.invoice_item_id))
                if source is None:
                    raise ValidationError(
                        f"Invoice item {data.invoice_item_id} does not belong to invoice {invoice.invoice_number}",
                        error_code="INVALID_INVOICE_ITEM",
                    )

            product_name = data.product_name or (source.product_name if source else None)
            if not product_name:
                raise ValidationError("product_name is required when no invoice item is referenced")

            item = CreditNoteItem(
                tenant_id=tenant_id,
                invoice_item_id=data.invoice_item_id,
                product_id=data.product_id or (source.product_id if source else None),
                product_name=product_name,
                description=data.description,
                quantity=data.quantity,
                unit_price=data.unit_price,
                discount_amount=data.discount_amount,
                tax_percentage=data.tax_percentage,
                restock=data.restock,
            )
            item.calculate_total()
            built.append(item)
        return built

    async def _load_invoice(self, tenant_id: uuid.UUID, invoice_id: uuid.UUID, for_update: bool = False) -> Invoice:
        return await get_for_tenant(
            self.db, Invoice, tenant_id, invoice_id, "Invoice",
            options=INVOICE_LOAD_OPTIONS,
            for_update=for_update,
        )

    # ==================== CRUD ====================

    async def create_credit_note(
        self,
        tenant_id: uuid.UUID,
        user_id: str,
        data: CreditNoteCreate,
    ) -> CreditNote:
        invoice = await self._load_invoice(tenant_id, data.invoice_id)
        if invoice.status not in CREDITABLE_INVOICE_STATUSES:
            raise IllegalStateError(
                "Credit notes can only be raised against completed invoices",
                error_code="INVOICE_NOT_COMPLETED",
            )

        credit_note = CreditNote(
            tenant_id=tenant_id,
            credit_note_number=await self.sequences.next_credit_note_number(tenant_id),
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_id=invoice.customer_id,
            customer_name=invoice.customer_name,
            status=CreditNoteStatus.DRAFT.value,
            reason=data.reason.value,
            reason_description=data.reason_description,
            application_method=data.application_method.value,
            restock_items=data.restock_items,
            notes=data.notes,
            created_by=user_id,
            items=self._build_items(tenant_id, invoice, data.items),
        )
        credit_note.calculate_totals()
        self.db.add(credit_note)
        await self.db.flush()

        logger.info(f"Created credit note with number: {credit_note.credit_note_number}")
        return credit_note

    async def update_credit_note(
        self,
        credit_note_id: uuid.UUID,
        tenant_id: uuid.UUID,
        user_id: str,
        data: CreditNoteUpdate,
    ) -> CreditNote:
        credit_note = await self.get_credit_note(credit_note_id, tenant_id, for_update=True)
        if credit_note.status != CreditNoteStatus.DRAFT.value:
            raise IllegalStateError("Only draft credit notes can be updated", error_code="INVALID_STATUS_TRANSITION")

        changes = data.model_dump(exclude_unset=True, exclude={"items"})
        for field, value in changes.items():
            if field in ("reason", "application_method") and value is not None:
                value = value.value
            setattr(credit_note, field, value)

        if data.items is not None:
            invoice = await self._load_invoice(tenant_id, credit_note.invoice_id)
            credit_note.items.clear()
            credit_note.items.extend(self._build_items(tenant_id, invoice, data.items))

        credit_note.calculate_totals()
        credit_note.updated_by = user_id
        await self.db.flush()
        logger.info(f"Updated credit note: {credit_note.credit_note_number}")
        return credit_note

    async def get_credit_note(
        self,
        credit_note_id: uuid.UUID,
        tenant_id: uuid.UUID,
        for_update: bool = False,
    ) -> CreditNote:
        return await get_for_tenant(
            self.db, CreditNote, tenant_id, credit_note_id, "Credit note",
            options=(selectinload(CreditNote.items),),
            for_update=for_update,
        )

    async def list_credit_notes(
        self,
        tenant_id: uuid.UUID,
        status: Optional[CreditNoteStatus] = None,
        invoice_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[CreditNote]:
        stmt = tenant_select(CreditNote, tenant_id).options(selectinload(CreditNote.items))
        if status:
            stmt = stmt.where(CreditNote.status == status.value)
        if invoice_id:
            stmt = stmt.where(CreditNote.invoice_id == invoice_id)
        result = await self.db.execute(
            stmt.order_by(CreditNote.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    # ==================== Workflow ====================

    async def submit_for_approval(self, credit_note_id: uuid.UUID, tenant_id: uuid.UUID, user_id: str) -> CreditNote:
        credit_note = await self.get_credit_note(credit_note_id, tenant_id, for_update=True)
        transition_credit_note(
            credit_note, CreditNoteStatus.PENDING_APPROVAL,
            "Credit note must be in DRAFT status to submit",
        )
        credit_note.updated_by = user_id
        await self.db.flush()
        logger.info(f"Submitted credit note {credit_note.credit_note_number} for approval")
        return credit_note

    async def approve_credit_note(
        self,
        credit_note_id: uuid.UUID,
        tenant_id: uuid.UUID,
        user_id: str,
        approval_notes: Optional[str] = None,
    ) -> CreditNote:
        credit_note = await self.get_credit_note(credit_note_id, tenant_id, for_update=True)
        transition_credit_note(
            credit_note, CreditNoteStatus.APPROVED,
            "Credit note must be pending approval to approve",
        )
        credit_note.approved_by = user_id
        credit_note.approval_notes = approval_notes
        credit_note.updated_by = user_id
        await self.db.flush()
        logger.info(f"Approved credit note: {credit_note.credit_note_number}")
        return credit_note

    async def issue_credit_note(self, credit_note_id: uuid.UUID, tenant_id: uuid.UUID, user_id: str) -> CreditNote:
        credit_note = await self.get_credit_note(credit_note_id, tenant_id, for_update=True)
        transition_credit_note(
            credit_note, CreditNoteStatus.ISSUED,
            "Credit note must be approved to issue",
        )
        credit_note.updated_by = user_id
        await self.db.flush()

        if credit_note.restock_items:
            await self._restock_items(credit_note, user_id)

        logger.info(f"Issued credit note: {credit_note.credit_note_number}")
        return credit_note

    async def apply_credit_note(
        self,
        credit_note_id: uuid.UUID,
        tenant_id: uuid.UUID,
        user_id: str,
        refund_reference: Optional[str] = None,
    ) -> CreditNote:
        credit_note = await self.get_credit_note(credit_note_id, tenant_id, for_update=True)
        transition_credit_note(
            credit_note, CreditNoteStatus.APPLIED,
            "Credit note must be issued to apply",
        )

        method = credit_note.application_method
        if method == ApplicationMethod.REDUCE_INVOICE.value:
            await self._apply_to_invoice(credit_note)
        elif method == ApplicationMethod.REFUND.value:
            self._process_refund(credit_note, refund_reference)
        elif method == ApplicationMethod.STORE_CREDIT.value:
            await self._add_to_store_credit(credit_note)
        else:
            logger.warning(f"Unknown application method: {method}")

        credit_note.updated_by = user_id
        await self.db.flush()
        logger.info(f"Applied credit note: {credit_note.credit_note_number} ({method})")
        return credit_note

    async def cancel_credit_note(
        self,
        credit_note_id: uuid.UUID,
        tenant_id: uuid.UUID,
        user_id: str,
        reason: Optional[str] = None,
    ) -> CreditNote:
        credit_note = await self.get_credit_note(credit_note_id, tenant_id, for_update=True)
        message = None
        if credit_note.status == CreditNoteStatus.APPLIED.value:
            message = "Cannot cancel applied credit note"
        transition_credit_note(credit_note, CreditNoteStatus.CANCELLED, message)
        credit_note.cancel_reason = reason
        credit_note.updated_by = user_id
        await self.db.flush()
        logger.info(f"Cancelled credit note: {credit_note.credit_note_number}")
        return credit_note

    # ==================== Side effects ====================

    async def _restock_items(self, credit_note: CreditNote, user_id: str) -> None:
        invoice = await get_for_tenant(self.db, Invoice, credit_note.tenant_id, credit_note.invoice_id, "Invoice")
        logger.info(f"Restocking items from credit note: {credit_note.credit_note_number}")

        for item in credit_note.items:
            if not item.restock or item.product_id is None:
                continue
            done = await self.side_effects.perform(
                credit_note.tenant_id,
                SideEffectType.STOCK_RESTOCK,
                stock_payload(
                    item.product_id, invoice.store_id, item.quantity,
                    credit_note.credit_note_number, user_id,
                ),
                reference=credit_note.credit_note_number,
            )
            if done:
                logger.info(f"Restocked {item.quantity} units of product {item.product_id}")

    async def _apply_to_invoice(self, credit_note: CreditNote) -> None:
        """Record the credit as a payment on the source invoice, up to its balance."""
        invoice = await self._load_invoice(credit_note.tenant_id, credit_note.invoice_id, for_update=True)
        if invoice.status != InvoiceStatus.COMPLETED.value:
            logger.warning(
                f"Credit note {credit_note.credit_note_number} not applied to invoice "
                f"{invoice.invoice_number} in status {invoice.status}"
            )
            return

        outstanding = invoice.balance_amount or ZERO
        amount = min(credit_note.total_amount, outstanding)
        if amount <= 0:
            logger.info(f"Invoice {invoice.invoice_number} has no outstanding balance to reduce")
            return

        payment = Payment(
            tenant_id=credit_note.tenant_id,
            mode=PaymentMode.CREDIT_NOTE.value,
            amount=amount,
            reference_number=credit_note.credit_note_number,
            notes=f"Credit note {credit_note.credit_note_number}",
        )
        await self.invoices.add_payment(invoice, payment)
        logger.info(
            f"Applied {amount} from credit note {credit_note.credit_note_number} to invoice {invoice.invoice_number}"
        )

    def _process_refund(self, credit_note: CreditNote, refund_reference: Optional[str]) -> None:
        credit_note.refund_reference = refund_reference or f"RF-{uuid.uuid4().hex[:10].upper()}"
        logger.info(
            f"Processing refund of {credit_note.total_amount} for credit note {credit_note.credit_note_number} "
            f"(reference {credit_note.refund_reference})"
        )

    async def _add_to_store_credit(self, credit_note: CreditNote) -> None:
        if credit_note.customer_id is None:
            logger.warning(f"Credit note {credit_note.credit_note_number} has no customer for store credit")
            return
        customer = await get_by_field(self.db, Customer, credit_note.tenant_id, Customer.id, credit_note.customer_id)
        if customer is None:
            logger.warning(f"Customer {credit_note.customer_id} not found for credit note {credit_note.credit_note_number}")
            return
        customer.wallet_balance = (customer.wallet_balance or ZERO) + credit_note.total_amount
        await self.db.flush()
        logger.info(f"Added {credit_note.total_amount} store credit to customer {customer.id}")
