"""
Document Sequence Model for Atomic Number Generation

One counter row per (tenant, document type, period). The row is locked
with SELECT ... FOR UPDATE while it is incremented, so numbers stay
gap-free and unique across processes.

DOCUMENT FORMATS:
    INV: INV/2024-25/0001  (period = financial year)
    QT:  QT/2024-25/0001   (period = financial year)
    CN:  CN/0001           (period = ALL, never resets)
"""
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from retailbill.database import Base
from retailbill.db_types import UUIDType, TZDateTime, utcnow


CONTINUOUS_PERIOD = "ALL"


class DocumentType(str, Enum):
    """Document types that use sequence numbering."""
    INVOICE = "INV"
    CREDIT_NOTE = "CN"
    QUOTE = "QT"


class DocumentSequence(Base):
    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "document_type", "period",
            name="uq_document_sequence_tenant_type_period"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document_type: Mapped[str] = mapped_column(String(10), nullable=False)
    period: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="Financial year such as 2024-25, or ALL for continuous numbering",
    )
    current_number: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, comment="Last used sequence number"
    )
    padding_length: Mapped[int] = mapped_column(Integer, default=4, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def next_number(self) -> int:
        """Increment and return the counter. The caller owns the transaction."""
        self.current_number = (self.current_number or 0) + 1
        return self.current_number

    @staticmethod
    def get_financial_year(on: Optional[date] = None) -> str:
        """
        Indian financial year (April to March) containing `on`.

        - Jan 2025 -> 2024-25
        - Apr 2025 -> 2025-26
        """
        on = on or date.today()
        start = on.year if on.month >= 4 else on.year - 1
        return f"{start}-{(start + 1) % 100:02d}"

    def __repr__(self) -> str:
        return f"<DocumentSequence({self.document_type}/{self.period}: {self.current_number})>"
