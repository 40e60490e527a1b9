"""
Document Sequence Service for Atomic Number Generation

Numbers are taken from a persisted counter row per (tenant, document type,
period). The row is read with SELECT FOR UPDATE, incremented and flushed in
the caller's transaction, so two concurrent requests cannot get the same
number and a rolled-back request does not burn one.

USAGE:
    service = DocumentSequenceService(db)
    number = await service.next_invoice_number(tenant_id)
    # Returns: INV/2024-25/0001
"""
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.config import settings
from retailbill.models.document_sequence import (
    CONTINUOUS_PERIOD, DocumentSequence, DocumentType,
)
from retailbill.services.configuration_service import ConfigurationService

INVOICE_PREFIX_KEY = "billing.invoice_prefix"
CREDIT_NOTE_PREFIX_KEY = "billing.credit_note_prefix"
QUOTE_PREFIX_KEY = "billing.quote_prefix"


class DocumentSequenceService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.config = ConfigurationService(db)

    async def next_invoice_number(self, tenant_id: uuid.UUID, on: Optional[date] = None) -> str:
        prefix = await self.config.get_config_value(
            INVOICE_PREFIX_KEY, tenant_id, settings.DEFAULT_INVOICE_PREFIX
        )
        period = DocumentSequence.get_financial_year(on)
        return await self.get_next_number(tenant_id, DocumentType.INVOICE, period, prefix)

    async def next_credit_note_number(self, tenant_id: uuid.UUID) -> str:
        prefix = await self.config.get_config_value(
            CREDIT_NOTE_PREFIX_KEY, tenant_id, settings.DEFAULT_CREDIT_NOTE_PREFIX
        )
        return await self.get_next_number(tenant_id, DocumentType.CREDIT_NOTE, CONTINUOUS_PERIOD, prefix)

    async def next_quote_number(self, tenant_id: uuid.UUID, on: Optional[date] = None) -> str:
        prefix = await self.config.get_config_value(
            QUOTE_PREFIX_KEY, tenant_id, settings.DEFAULT_QUOTE_PREFIX
        )
        period = DocumentSequence.get_financial_year(on)
        return await self.get_next_number(tenant_id, DocumentType.QUOTE, period, prefix)

    async def get_next_number(
        self,
        tenant_id: uuid.UUID,
        document_type: DocumentType,
        period: str,
        prefix: str,
    ) -> str:
        """
        Increment the counter and format the document number.

        Continuous sequences omit the period: CN/0001.
        """
        sequence = await self._get_or_create_sequence(tenant_id, document_type, period)
        number = sequence.next_number()
        await self.db.flush()

        seq = str(number).zfill(sequence.padding_length)
        if period == CONTINUOUS_PERIOD:
            return f"{prefix}/{seq}"
        return f"{prefix}/{period}/{seq}"

    async def get_current_number(self, tenant_id: uuid.UUID, document_type: DocumentType, period: str) -> int:
        """Last number issued (0 when the sequence has not been used)."""
        result = await self.db.execute(
            select(DocumentSequence.current_number).where(
                DocumentSequence.tenant_id == tenant_id,
                DocumentSequence.document_type == document_type.value,
                DocumentSequence.period == period,
            )
        )
        return result.scalar_one_or_none() or 0

    async def _get_or_create_sequence(
        self,
        tenant_id: uuid.UUID,
        document_type: DocumentType,
        period: str,
    ) -> DocumentSequence:
        """Get the sequence row locked for update, creating it on first use."""
        stmt = (
            select(DocumentSequence)
            .where(
                DocumentSequence.tenant_id == tenant_id,
                DocumentSequence.document_type == document_type.value,
                DocumentSequence.period == period,
            )
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        sequence = result.scalar_one_or_none()
        if sequence:
            return sequence

        sequence = DocumentSequence(
            tenant_id=tenant_id,
            document_type=document_type.value,
            period=period,
            current_number=0,
            padding_length=4,
        )
        self.db.add(sequence)
        await self.db.flush()

        # Re-fetch with lock
        result = await self.db.execute(
            select(DocumentSequence)
            .where(DocumentSequence.id == sequence.id)
            .with_for_update()
        )
        return result.scalar_one()
