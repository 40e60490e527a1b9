"""
GST Calculation Service

Resolves the GST rate for an HSN/SAC code or tax category and splits tax on
a taxable amount:

- Intra-state supply (supplier state == customer state): CGST + SGST
- Inter-state supply: IGST
- CESS is levied in both cases

All component amounts are rounded half-up to 2 decimals.
"""
import logging
import re
import uuid
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.core.exceptions import NotFoundError, ValidationError
from retailbill.models.gst import GstRate
from retailbill.schemas.gst import GstCalculationResponse, GstRateCreate, GstRateUpdate

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$")

# GST state codes (first two digits of a GSTIN)
GST_STATE_CODES = {
    "01": "Jammu & Kashmir", "02": "Himachal Pradesh", "03": "Punjab",
    "04": "Chandigarh", "05": "Uttarakhand", "06": "Haryana",
    "07": "Delhi", "08": "Rajasthan", "09": "Uttar Pradesh",
    "10": "Bihar", "11": "Sikkim", "12": "Arunachal Pradesh",
    "13": "Nagaland", "14": "Manipur", "15": "Mizoram",
    "16": "Tripura", "17": "Meghalaya", "18": "Assam",
    "19": "West Bengal", "20": "Jharkhand", "21": "Odisha",
    "22": "Chhattisgarh", "23": "Madhya Pradesh", "24": "Gujarat",
    "26": "Dadra & Nagar Haveli and Daman & Diu", "27": "Maharashtra",
    "29": "Karnataka", "30": "Goa", "31": "Lakshadweep", "32": "Kerala",
    "33": "Tamil Nadu", "34": "Puducherry", "35": "Andaman & Nicobar Islands",
    "36": "Telangana", "37": "Andhra Pradesh", "38": "Ladakh",
    "97": "Other Territory",
}


def _percent_of(amount: Decimal, rate: Optional[Decimal]) -> Decimal:
    return (amount * (rate or ZERO) / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_state(state: Optional[str]) -> str:
    """Upper-case state name; a two digit GST state code is expanded to its name."""
    value = (state or "").strip()
    if value in GST_STATE_CODES:
        value = GST_STATE_CODES[value]
    return value.upper()


def is_interstate_supply(supplier_state: Optional[str], customer_state: Optional[str]) -> bool:
    return normalize_state(supplier_state) != normalize_state(customer_state)


def split_gst(amount: Decimal, rate: GstRate, is_interstate: bool) -> GstCalculationResponse:
    """Split tax on `amount` according to `rate`."""
    amount = Decimal(amount)
    if is_interstate:
        cgst = ZERO
        sgst = ZERO
        igst = _percent_of(amount, rate.igst_rate)
    else:
        cgst = _percent_of(amount, rate.cgst_rate)
        sgst = _percent_of(amount, rate.sgst_rate)
        igst = ZERO
    cess = _percent_of(amount, rate.cess_rate)

    return GstCalculationResponse(
        taxable_amount=amount,
        is_interstate=is_interstate,
        cgst_rate=rate.cgst_rate or ZERO,
        sgst_rate=rate.sgst_rate or ZERO,
        igst_rate=rate.igst_rate or ZERO,
        cess_rate=rate.cess_rate or ZERO,
        cgst_amount=cgst,
        sgst_amount=sgst,
        igst_amount=igst,
        cess_amount=cess,
        total_tax=cgst + sgst + igst + cess,
    )


def validate_gstin(gstin: Optional[str]) -> bool:
    return bool(gstin) and GSTIN_PATTERN.match(gstin) is not None


def ensure_valid_gstin(gstin: Optional[str]) -> Optional[str]:
    """Upper-cased GSTIN, or None when empty. Raises ValidationError when malformed."""
    if not gstin:
        return None
    gstin = gstin.strip().upper()
    if not validate_gstin(gstin):
        raise ValidationError(f"Invalid GSTIN: {gstin}", error_code="INVALID_GSTIN")
    return gstin


def state_code_from_gstin(gstin: str) -> str:
    if not validate_gstin(gstin):
        raise ValidationError(f"Invalid GSTIN: {gstin}", error_code="INVALID_GSTIN")
    return gstin[0:2]


def pan_from_gstin(gstin: str) -> str:
    if not validate_gstin(gstin):
        raise ValidationError(f"Invalid GSTIN: {gstin}", error_code="INVALID_GSTIN")
    return gstin[2:12]


class GstService:
    """Rate lookup and tax calculation backed by the gst_rates table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _active_rate(
        self,
        column,
        code: str,
        tenant_id: Optional[uuid.UUID],
        on: Optional[date] = None,
    ) -> Optional[GstRate]:
        """Active rate for a code on a date; a tenant override wins over the global row."""
        on = on or date.today()
        tenant_filter = GstRate.tenant_id.is_(None)
        if tenant_id is not None:
            tenant_filter = or_(GstRate.tenant_id == tenant_id, GstRate.tenant_id.is_(None))

        result = await self.db.execute(
            select(GstRate)
            .where(
                column == code,
                tenant_filter,
                GstRate.is_active == True,
                GstRate.effective_from <= on,
                or_(GstRate.effective_to.is_(None), GstRate.effective_to >= on),
            )
            .order_by(GstRate.tenant_id.is_(None), GstRate.effective_from.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_rate_by_hsn(self, hsn_code: str, tenant_id: Optional[uuid.UUID] = None) -> Optional[GstRate]:
        return await self._active_rate(GstRate.hsn_code, hsn_code, tenant_id)

    async def get_rate_by_sac(self, sac_code: str, tenant_id: Optional[uuid.UUID] = None) -> Optional[GstRate]:
        return await self._active_rate(GstRate.sac_code, sac_code, tenant_id)

    async def get_rate_by_category(self, category: str, tenant_id: Optional[uuid.UUID] = None) -> Optional[GstRate]:
        return await self._active_rate(GstRate.tax_category, category, tenant_id)

    async def calculate(
        self,
        code: str,
        amount: Decimal,
        supplier_state: str,
        customer_state: str,
        tenant_id: Optional[uuid.UUID] = None,
    ) -> GstCalculationResponse:
        """Tax on `amount` for an HSN (tried first) or SAC code."""
        rate = await self.get_rate_by_hsn(code, tenant_id)
        if rate is None:
            rate = await self.get_rate_by_sac(code, tenant_id)
        if rate is None:
            raise NotFoundError(f"GST rate not found for code: {code}", error_code="GST_RATE_NOT_FOUND")

        interstate = is_interstate_supply(supplier_state, customer_state)
        logger.debug(f"GST for code {code} on {amount}: interstate={interstate}")
        return split_gst(amount, rate, interstate)

    async def calculate_by_category(
        self,
        category: str,
        amount: Decimal,
        is_interstate: bool,
        tenant_id: Optional[uuid.UUID] = None,
    ) -> GstCalculationResponse:
        rate = await self.get_rate_by_category(category, tenant_id)
        if rate is None:
            raise NotFoundError(
                f"GST rate not found for category: {category}",
                error_code="GST_RATE_NOT_FOUND",
            )
        return split_gst(amount, rate, is_interstate)

    # ==================== Rate master ====================

    async def list_rates(self, tenant_id: uuid.UUID, include_inactive: bool = False) -> List[GstRate]:
        stmt = select(GstRate).where(
            or_(GstRate.tenant_id == tenant_id, GstRate.tenant_id.is_(None))
        )
        if not include_inactive:
            stmt = stmt.where(GstRate.is_active == True)
        result = await self.db.execute(
            stmt.order_by(GstRate.hsn_code, GstRate.sac_code, GstRate.effective_from.desc())
        )
        return list(result.scalars().all())

    async def get_rate(self, rate_id: uuid.UUID, tenant_id: uuid.UUID) -> GstRate:
        result = await self.db.execute(
            select(GstRate).where(
                GstRate.id == rate_id,
                or_(GstRate.tenant_id == tenant_id, GstRate.tenant_id.is_(None)),
            )
        )
        rate = result.scalar_one_or_none()
        if rate is None:
            raise NotFoundError(f"GST rate not found: {rate_id}", error_code="GST_RATE_NOT_FOUND")
        return rate

    async def create_rate(self, tenant_id: uuid.UUID, data: GstRateCreate) -> GstRate:
        """Create a tenant override rate."""
        if not (data.hsn_code or data.sac_code or data.tax_category):
            raise ValidationError("One of hsn_code, sac_code or tax_category is required")

        rate = GstRate(tenant_id=tenant_id, **data.model_dump())
        self.db.add(rate)
        await self.db.flush()
        logger.info(f"Created GST rate {rate.id} for tenant {tenant_id}")
        return rate

    async def update_rate(self, rate_id: uuid.UUID, tenant_id: uuid.UUID, data: GstRateUpdate) -> GstRate:
        rate = await self.get_rate(rate_id, tenant_id)
        if rate.tenant_id is None:
            raise ValidationError("Global GST rates cannot be edited by a tenant")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(rate, field, value)
        await self.db.flush()
        return rate

    async def delete_rate(self, rate_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        rate = await self.get_rate(rate_id, tenant_id)
        if rate.tenant_id is None:
            raise ValidationError("Global GST rates cannot be deleted by a tenant")
        await self.db.delete(rate)
        await self.db.flush()
