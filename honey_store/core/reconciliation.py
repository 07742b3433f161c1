"""
Reconciliation of orders stuck in pending.

The gateway never retries a lost webhook, so an order can stay pending
forever. The sweep moves pending orders whose last update is older than the
configured timeout to error, which makes them retryable. The update is
conditional, so a webhook that lands during the sweep still wins.
"""
from datetime import timedelta
from typing import List, Optional

import structlog

from honey_store.core.broadcaster import ORDER_UPDATED, LiveStatusBroadcaster
from honey_store.core.models import OrderSnapshot, PaymentStatus
from honey_store.database.models import Order, utcnow
from honey_store.database.order_store import OrderStore
from honey_store.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class PendingOrderReconciler:
    """Marks stale pending orders as error."""

    def __init__(
        self,
        store: OrderStore,
        timeout_seconds: int,
        broadcaster: Optional[LiveStatusBroadcaster] = None,
    ):
        """
        Initialize reconciler.

        Args:
            store: Order store
            timeout_seconds: Age after which a pending order is stale
            broadcaster: Optional broadcaster notified of every swept order
        """
        self.store = store
        self.timeout_seconds = timeout_seconds
        self.broadcaster = broadcaster

    @property
    def enabled(self) -> bool:
        return self.timeout_seconds > 0

    async def sweep(self) -> List[Order]:
        """
        Run one sweep.

        Returns:
            List[Order]: Orders moved from pending to error
        """
        if not self.enabled:
            return []

        cutoff = utcnow() - timedelta(seconds=self.timeout_seconds)
        stale = await self.store.find_pending_older_than(cutoff)
        swept: List[Order] = []

        for order in stale:
            update = await self.store.update_status(
                order.id,
                PaymentStatus.ERROR.value,
                only_if={PaymentStatus.PENDING.value},
            )
            if not update.applied:
                continue
            swept.append(update.order)
            logger.warning(
                "stale_pending_order_marked_error",
                order_id=order.id,
                pending_since=order.updated_at.isoformat(),
            )
            if self.broadcaster is not None:
                await self.broadcaster.broadcast(
                    ORDER_UPDATED, OrderSnapshot.model_validate(update.order)
                )

        metrics.record_reconciliation_sweep(len(swept))
        logger.info(
            "reconciliation_sweep_completed",
            candidates=len(stale),
            swept=len(swept),
            timeout_seconds=self.timeout_seconds,
        )
        return swept
