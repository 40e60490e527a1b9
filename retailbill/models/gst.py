"""GST rate master keyed by HSN code, SAC code or tax category."""
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, Date, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from retailbill.database import Base
from retailbill.db_types import UUIDType, TZDateTime, utcnow


class GstRate(Base):
    """
    GST rate for a product/service classification.

    tenant_id is NULL for the global rate table; a tenant row overrides it.
    igst_rate is expected to equal cgst_rate + sgst_rate but is not enforced.
    """
    __tablename__ = "gst_rates"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )
    hsn_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    sac_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    tax_category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    cgst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    sgst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    igst_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)
    cess_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"), nullable=False)

    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(TZDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TZDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        code = self.hsn_code or self.sac_code or self.tax_category
        return f"<GstRate(code='{code}', igst={self.igst_rate})>"
