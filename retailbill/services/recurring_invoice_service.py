"""
Recurring Invoice Service

Schedules produce one invoice per period. The scheduler calls
process_due_invoices() for every tenant; each due schedule yields a DRAFT
invoice with a single service line for the schedule amount.
"""
import calendar
import logging
import uuid
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.core.tenant_context import tenant_select, get_for_tenant
from retailbill.models.customer import Customer
from retailbill.models.invoice import Invoice
from retailbill.models.recurring import RecurringFrequency, RecurringInvoice
from retailbill.schemas.invoice import InvoiceCreate, InvoiceItemCreate
from retailbill.schemas.recurring import RecurringInvoiceCreate, RecurringInvoiceUpdate
from retailbill.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)

RECURRING_INVOICE_NOTE = "Auto-generated from recurring invoice schedule"

_MONTHS_PER_PERIOD = {
    RecurringFrequency.MONTHLY: 1,
    RecurringFrequency.QUARTERLY: 3,
    RecurringFrequency.SEMIANNUALLY: 6,
    RecurringFrequency.ANNUALLY: 12,
}

_DAYS_PER_PERIOD = {
    RecurringFrequency.DAILY: 1,
    RecurringFrequency.WEEKLY: 7,
    RecurringFrequency.BIWEEKLY: 14,
}


def add_months(value: date, months: int) -> date:
    """Shift by calendar months, clamping to the last day of shorter months."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_next_invoice_date(current: date, frequency) -> date:
    """Advance one period. Unknown frequencies advance one month."""
    try:
        frequency = RecurringFrequency(frequency)
    except ValueError:
        return add_months(current, 1)

    if frequency in _DAYS_PER_PERIOD:
        return current + timedelta(days=_DAYS_PER_PERIOD[frequency])
    return add_months(current, _MONTHS_PER_PERIOD.get(frequency, 1))


class RecurringInvoiceService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.invoices = InvoiceService(db)

    async def create_recurring_invoice(
        self,
        tenant_id: uuid.UUID,
        user_id: str,
        data: RecurringInvoiceCreate,
    ) -> RecurringInvoice:
        customer = await get_for_tenant(self.db, Customer, tenant_id, data.customer_id, "Customer")

        schedule = RecurringInvoice(
            tenant_id=tenant_id,
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
            next_invoice_date=data.start_date,
            invoices_generated=0,
            is_active=True,
            created_by=user_id,
            **data.model_dump(exclude={"frequency"}),
        )
        schedule.frequency = data.frequency.value
        self.db.add(schedule)
        await self.db.flush()
        logger.info(f"Created recurring invoice {schedule.id} for customer {customer.id}")
        return schedule

    async def update_recurring_invoice(
        self,
        schedule_id: uuid.UUID,
        tenant_id: uuid.UUID,
        data: RecurringInvoiceUpdate,
    ) -> RecurringInvoice:
        schedule = await self.get_recurring_invoice(schedule_id, tenant_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "frequency" and value is not None:
                value = RecurringFrequency(value).value
            setattr(schedule, field, value)
        await self.db.flush()
        logger.info(f"Updated recurring invoice: {schedule_id}")
        return schedule

    async def get_recurring_invoice(self, schedule_id: uuid.UUID, tenant_id: uuid.UUID) -> RecurringInvoice:
        return await get_for_tenant(self.db, RecurringInvoice, tenant_id, schedule_id, "Recurring invoice")

    async def list_recurring_invoices(
        self,
        tenant_id: uuid.UUID,
        active_only: bool = False,
        customer_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[RecurringInvoice]:
        stmt = tenant_select(RecurringInvoice, tenant_id)
        if active_only:
            stmt = stmt.where(RecurringInvoice.is_active == True)
        if customer_id:
            stmt = stmt.where(RecurringInvoice.customer_id == customer_id)
        result = await self.db.execute(
            stmt.order_by(RecurringInvoice.next_invoice_date).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def toggle_active(self, schedule_id: uuid.UUID, tenant_id: uuid.UUID, active: bool) -> RecurringInvoice:
        schedule = await self.get_recurring_invoice(schedule_id, tenant_id)
        schedule.is_active = active
        await self.db.flush()
        logger.info(f"Setting recurring invoice {schedule_id} active status to: {active}")
        return schedule

    async def delete_recurring_invoice(self, schedule_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        schedule = await self.get_recurring_invoice(schedule_id, tenant_id)
        await self.db.delete(schedule)
        await self.db.flush()

    async def generate_invoice_from_recurring(
        self,
        schedule: RecurringInvoice,
        today: Optional[date] = None,
    ) -> Optional[Invoice]:
        """
        Create the next invoice of a schedule.

        Returns None and deactivates the schedule when max_invoices has been
        reached or end_date has passed.
        """
        today = today or date.today()

        if schedule.max_invoices is not None and schedule.invoices_generated >= schedule.max_invoices:
            logger.info(f"Max invoices reached for recurring invoice: {schedule.id}")
            schedule.is_active = False
            await self.db.flush()
            return None

        if schedule.end_date is not None and today > schedule.end_date:
            logger.info(f"End date passed for recurring invoice: {schedule.id}")
            schedule.is_active = False
            await self.db.flush()
            return None

        request = InvoiceCreate(
            store_id=schedule.store_id,
            counter_id=schedule.counter_id,
            customer_id=schedule.customer_id,
            customer_name=schedule.customer_name,
            customer_phone=schedule.customer_phone,
            customer_email=schedule.customer_email,
            notes=RECURRING_INVOICE_NOTE,
            items=[
                InvoiceItemCreate(
                    product_name=schedule.description or "Recurring charge",
                    quantity=1,
                    unit_price=schedule.amount,
                    tax_rate=schedule.tax_rate or None,
                )
            ],
        )
        invoice = await self.invoices.create_invoice(schedule.tenant_id, schedule.created_by, request)

        schedule.invoices_generated = (schedule.invoices_generated or 0) + 1
        schedule.last_invoice_date = today
        schedule.next_invoice_date = calculate_next_invoice_date(schedule.next_invoice_date, schedule.frequency)
        await self.db.flush()

        logger.info(f"Generated invoice {invoice.invoice_number} from recurring invoice {schedule.id}")
        return invoice

    async def process_due_invoices(self, tenant_id: uuid.UUID, today: Optional[date] = None) -> List[Invoice]:
        """Generate invoices for every active schedule due on or before today."""
        today = today or date.today()
        result = await self.db.execute(
            tenant_select(
                RecurringInvoice, tenant_id,
                RecurringInvoice.is_active == True,
                RecurringInvoice.next_invoice_date <= today,
            ).order_by(RecurringInvoice.next_invoice_date)
        )
        due = list(result.scalars().all())
        logger.info(f"Found {len(due)} due recurring invoices for tenant {tenant_id}")

        generated = []
        for schedule in due:
            schedule_id = schedule.id
            try:
                # A failed schedule only rolls back its own savepoint
                async with self.db.begin_nested():
                    invoice = await self.generate_invoice_from_recurring(schedule, today)
            except Exception as e:
                logger.error(f"Error generating invoice for recurring invoice {schedule_id}: {e}")
                continue
            if invoice is not None:
                generated.append(invoice)
        return generated
