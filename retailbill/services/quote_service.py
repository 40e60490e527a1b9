"""
Quote Service

Quotes (estimates) are priced offers to a customer. A quote can be sent,
accepted or rejected any number of times until it is converted; conversion
produces a DRAFT invoice from the quote lines and is final.
"""
import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from retailbill.core.exceptions import IllegalStateError
from retailbill.core.tenant_context import tenant_select, get_for_tenant
from retailbill.db_types import utcnow
from retailbill.models.customer import Customer
from retailbill.models.invoice import Invoice
from retailbill.models.quote import Quote, QuoteItem, QuoteStatus
from retailbill.schemas.invoice import InvoiceCreate, InvoiceItemCreate
from retailbill.schemas.quote import QuoteCreate, QuoteItemCreate
from retailbill.services.document_sequence_service import DocumentSequenceService
from retailbill.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")
DEFAULT_VALIDITY_DAYS = 30


def build_quote_item(data: QuoteItemCreate) -> QuoteItem:
    """Quote line with tax on the discounted amount."""
    taxable = (data.unit_price * data.quantity - data.discount_amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return QuoteItem(
        product_id=data.product_id,
        product_name=data.product_name,
        description=data.description,
        quantity=data.quantity,
        unit_price=data.unit_price,
        discount_amount=data.discount_amount,
        tax_rate=data.tax_rate,
        tax_amount=(taxable * data.tax_rate / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP),
    )


class QuoteService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)
        self.invoices = InvoiceService(db)

    async def create_quote(self, tenant_id: uuid.UUID, user_id: str, data: QuoteCreate) -> Quote:
        customer = await get_for_tenant(self.db, Customer, tenant_id, data.customer_id, "Customer")
        quote_date = data.quote_date or date.today()

        quote = Quote(
            tenant_id=tenant_id,
            quote_number=await self.sequences.next_quote_number(tenant_id, quote_date),
            customer_id=customer.id,
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
            status=QuoteStatus.DRAFT.value,
            quote_date=quote_date,
            valid_until=data.valid_until or quote_date + timedelta(days=DEFAULT_VALIDITY_DAYS),
            notes=data.notes,
            terms=data.terms,
            payment_term_days=data.payment_term_days,
            created_by=user_id,
            items=[build_quote_item(item) for item in data.items],
        )
        quote.calculate_totals()
        self.db.add(quote)
        await self.db.flush()

        logger.info(f"Quote created successfully: {quote.quote_number}")
        return quote

    async def get_quote(self, quote_id: uuid.UUID, tenant_id: uuid.UUID, for_update: bool = False) -> Quote:
        return await get_for_tenant(
            self.db, Quote, tenant_id, quote_id, "Quote",
            options=(selectinload(Quote.items),),
            for_update=for_update,
        )

    async def list_quotes(
        self,
        tenant_id: uuid.UUID,
        status: Optional[QuoteStatus] = None,
        customer_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Quote]:
        stmt = tenant_select(Quote, tenant_id).options(selectinload(Quote.items))
        if status:
            stmt = stmt.where(Quote.status == status.value)
        if customer_id:
            stmt = stmt.where(Quote.customer_id == customer_id)
        result = await self.db.execute(
            stmt.order_by(Quote.quote_date.desc(), Quote.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    # ==================== Status changes ====================

    async def send_quote(self, quote_id: uuid.UUID, tenant_id: uuid.UUID) -> Quote:
        quote = await self.get_quote(quote_id, tenant_id, for_update=True)
        if quote.status == QuoteStatus.CONVERTED.value:
            raise IllegalStateError("Cannot send already converted quote", error_code="INVALID_STATUS_TRANSITION")

        quote.status = QuoteStatus.SENT.value
        quote.sent_at = utcnow()
        await self.db.flush()
        logger.info(f"Quote sent: {quote.quote_number}")
        return quote

    async def accept_quote(self, quote_id: uuid.UUID, tenant_id: uuid.UUID) -> Quote:
        quote = await self.get_quote(quote_id, tenant_id, for_update=True)
        if quote.status == QuoteStatus.CONVERTED.value:
            raise IllegalStateError("Quote already converted", error_code="INVALID_STATUS_TRANSITION")

        quote.status = QuoteStatus.ACCEPTED.value
        quote.accepted_at = utcnow()
        await self.db.flush()
        logger.info(f"Quote accepted: {quote.quote_number}")
        return quote

    async def reject_quote(self, quote_id: uuid.UUID, tenant_id: uuid.UUID, reason: Optional[str] = None) -> Quote:
        quote = await self.get_quote(quote_id, tenant_id, for_update=True)
        if quote.status == QuoteStatus.CONVERTED.value:
            raise IllegalStateError("Cannot reject converted quote", error_code="INVALID_STATUS_TRANSITION")

        quote.status = QuoteStatus.REJECTED.value
        quote.rejected_at = utcnow()
        quote.rejection_reason = reason
        await self.db.flush()
        logger.info(f"Quote rejected: {quote.quote_number}")
        return quote

    async def convert_to_invoice(
        self,
        quote_id: uuid.UUID,
        tenant_id: uuid.UUID,
        user_id: str,
        store_id: str = "MAIN",
        counter_id: str = "QUOTE",
    ) -> Invoice:
        quote = await self.get_quote(quote_id, tenant_id, for_update=True)
        if quote.status == QuoteStatus.CONVERTED.value:
            raise IllegalStateError("Quote already converted to invoice", error_code="INVALID_STATUS_TRANSITION")
        if quote.status == QuoteStatus.REJECTED.value:
            raise IllegalStateError("Cannot convert rejected quote", error_code="INVALID_STATUS_TRANSITION")

        request = InvoiceCreate(
            store_id=store_id,
            counter_id=counter_id,
            customer_id=quote.customer_id,
            customer_name=quote.customer_name,
            customer_phone=quote.customer_phone,
            customer_email=quote.customer_email,
            notes=quote.notes,
            items=[
                InvoiceItemCreate(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    discount_amount=item.discount_amount,
                    tax_rate=item.tax_rate or None,
                )
                for item in quote.items
            ],
        )
        invoice = await self.invoices.create_invoice(tenant_id, user_id, request)

        quote.status = QuoteStatus.CONVERTED.value
        quote.converted_invoice_id = invoice.id
        quote.converted_at = utcnow()
        await self.db.flush()

        logger.info(f"Quote {quote.quote_number} converted to invoice {invoice.invoice_number}")
        return invoice

    async def mark_expired_quotes(self, tenant_id: uuid.UUID, today: Optional[date] = None) -> int:
        """SENT quotes whose validity has lapsed become EXPIRED. Returns the count."""
        today = today or date.today()
        result = await self.db.execute(
            update(Quote)
            .where(
                Quote.tenant_id == tenant_id,
                Quote.status == QuoteStatus.SENT.value,
                Quote.valid_until < today,
            )
            .values(status=QuoteStatus.EXPIRED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        expired = result.rowcount or 0
        if expired:
            logger.info(f"Marked {expired} quote(s) as expired for tenant {tenant_id}")
        return expired
