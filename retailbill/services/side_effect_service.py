"""
Side-effect outbox.

Stock updates triggered by invoices and credit notes must never roll back
the financial transaction. They run inline first; when they fail with a
domain error the request is stored as a PendingSideEffect in the same
transaction, and the retry job replays it later.
"""
import logging
import uuid
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from retailbill.config import settings
from retailbill.core.exceptions import BillingError
from retailbill.core.tenant_context import tenant_select
from retailbill.models.inventory import MovementType
from retailbill.models.side_effect import PendingSideEffect, SideEffectStatus, SideEffectType
from retailbill.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


def stock_payload(
    product_id: uuid.UUID,
    location_id: str,
    quantity: int,
    reference_id: str,
    performed_by: Optional[str] = None,
) -> dict:
    return {
        "product_id": str(product_id),
        "location_id": location_id,
        "quantity": quantity,
        "reference_id": reference_id,
        "performed_by": performed_by,
    }


class SideEffectService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)

    async def _execute(self, tenant_id: uuid.UUID, effect_type: SideEffectType, payload: dict) -> None:
        product_id = uuid.UUID(payload["product_id"])
        location_id = payload["location_id"]
        quantity = int(payload["quantity"])
        reference_id = payload["reference_id"]
        performed_by = payload.get("performed_by")

        if effect_type == SideEffectType.STOCK_DEDUCT:
            await self.inventory.deduct_stock(
                tenant_id, product_id, location_id, quantity, reference_id, performed_by
            )
        elif effect_type == SideEffectType.STOCK_REVERSE:
            await self.inventory.reverse_stock(
                tenant_id, product_id, location_id, quantity, reference_id, performed_by
            )
        elif effect_type == SideEffectType.STOCK_RESTOCK:
            await self.inventory.record_movement(
                tenant_id, product_id, location_id, MovementType.IN, quantity,
                reference_type="CREDIT_NOTE",
                reference_id=reference_id,
                notes=f"Restock: {reference_id}",
                performed_by=performed_by,
            )
        else:
            raise ValueError(f"Unknown side effect type: {effect_type}")

    async def perform(
        self,
        tenant_id: uuid.UUID,
        effect_type: SideEffectType,
        payload: dict,
        reference: Optional[str] = None,
    ) -> bool:
        """
        Run a side effect now. On a domain failure the effect is queued for
        retry and False is returned; nothing is raised.
        """
        try:
            await self._execute(tenant_id, effect_type, payload)
            return True
        except BillingError as e:
            logger.error(
                f"{effect_type.value} failed for {reference or payload.get('reference_id')}: {e.message}. "
                f"Queued for retry."
            )
            await self.record_failure(tenant_id, effect_type, payload, reference, e.message)
            return False

    async def record_failure(
        self,
        tenant_id: uuid.UUID,
        effect_type: SideEffectType,
        payload: dict,
        reference: Optional[str],
        error: str,
    ) -> PendingSideEffect:
        effect = PendingSideEffect(
            tenant_id=tenant_id,
            effect_type=effect_type.value,
            payload=payload,
            reference=reference,
            status=SideEffectStatus.PENDING.value,
            attempts=1,
            last_error=error,
        )
        self.db.add(effect)
        await self.db.flush()
        return effect

    async def list_effects(
        self,
        tenant_id: uuid.UUID,
        status: Optional[SideEffectStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[PendingSideEffect]:
        stmt = tenant_select(PendingSideEffect, tenant_id)
        if status:
            stmt = stmt.where(PendingSideEffect.status == status.value)
        result = await self.db.execute(
            stmt.order_by(PendingSideEffect.created_at).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def retry_pending(self, tenant_id: uuid.UUID, max_attempts: Optional[int] = None) -> Dict[str, int]:
        """Replay PENDING effects. Returns counts of done, retried and failed."""
        max_attempts = max_attempts or settings.SIDE_EFFECT_MAX_ATTEMPTS
        pending = await self.list_effects(tenant_id, SideEffectStatus.PENDING, limit=500)
        stats = {"done": 0, "retried": 0, "failed": 0}

        for effect in pending:
            try:
                await self._execute(tenant_id, SideEffectType(effect.effect_type), effect.payload)
                effect.status = SideEffectStatus.DONE.value
                effect.last_error = None
                stats["done"] += 1
            except BillingError as e:
                effect.attempts += 1
                effect.last_error = e.message
                if effect.attempts >= max_attempts:
                    effect.status = SideEffectStatus.FAILED.value
                    stats["failed"] += 1
                    logger.error(
                        f"Side effect {effect.id} ({effect.effect_type}, {effect.reference}) "
                        f"gave up after {effect.attempts} attempts: {e.message}"
                    )
                else:
                    stats["retried"] += 1
            await self.db.flush()

        if pending:
            logger.info(f"Side effect retry for tenant {tenant_id}: {stats}")
        return stats
