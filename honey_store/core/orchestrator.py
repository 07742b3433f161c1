"""
Order-payment orchestrator.

Drives the payment status of an order:

    pending --dispatch fails--> error
    pending --webhook approved--> approved
    pending --webhook other--> rejected
    rejected/error --retry--> pending

Creating an order and retrying a payment return before the payment settles.
The dispatch to the gateway runs on the task runner; the result arrives later
through the webhook.
"""
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from honey_store.config import Settings, WebhookPolicy
from honey_store.core.broadcaster import ORDER_UPDATED, PAYMENT_WEBHOOK, LiveStatusBroadcaster
from honey_store.core.connectivity import ConnectivityStrategy
from honey_store.core.models import (
    RETRYABLE_STATUSES,
    OrderSnapshot,
    PaymentData,
    PaymentOutcome,
    PaymentRequest,
    PaymentStatus,
    RequestLog,
)
from honey_store.core.runtime import ServiceRuntime
from honey_store.core.tasks import TaskRunner
from honey_store.core.webhook_payloads import parse_webhook_payload
from honey_store.database.models import Order
from honey_store.database.order_store import OrderStore
from honey_store.integrations.gateway_client import PaymentDispatchError, PaymentGatewayClient
from honey_store.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class OrderError(Exception):
    """Base exception for order workflow errors."""

    pass


class OrderNotFoundError(OrderError):
    """Raised when an order id does not exist."""

    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class InvalidOrderStateError(OrderError):
    """Raised when an operation is not allowed in the order's current status."""

    def __init__(self, order_id: str, status: str):
        super().__init__(f"Order payment cannot be retried. Current status: {status}")
        self.order_id = order_id
        self.status = status


@dataclass
class WebhookResult:
    """What receive_webhook did with one callback."""

    outcome: PaymentOutcome
    result: str  # applied, ignored, missing_order
    order: Optional[Order] = None

    @property
    def applied(self) -> bool:
        return self.result == "applied"


def settle_delay_seconds(payment_delay_ms: int) -> int:
    """Convert the admin delay to whole seconds, rounding halves up (minimum 1)."""
    return max(1, int(payment_delay_ms / 1000 + 0.5))


class OrderPaymentOrchestrator:
    """Creates orders, dispatches payments and applies webhook results."""

    def __init__(
        self,
        settings: Settings,
        store: OrderStore,
        gateway_client: PaymentGatewayClient,
        broadcaster: LiveStatusBroadcaster,
        runtime: ServiceRuntime,
        task_runner: TaskRunner,
        connectivity: ConnectivityStrategy,
    ):
        self.settings = settings
        self.store = store
        self.gateway_client = gateway_client
        self.broadcaster = broadcaster
        self.runtime = runtime
        self.task_runner = task_runner
        self.connectivity = connectivity

    async def _publish_order(self, order: Order) -> None:
        await self.broadcaster.broadcast(ORDER_UPDATED, OrderSnapshot.model_validate(order))

    async def create_order(
        self,
        items: List[Dict[str, Any]],
        total: float,
        customer_name: str,
        customer_email: str,
        shipping_address: str,
    ) -> Order:
        """
        Persist a new pending order and start its payment in the background.

        Returns:
            Order: The stored order, still pending
        """
        order = await self.store.create(
            items=items,
            total=total,
            customer_name=customer_name,
            customer_email=customer_email,
            shipping_address=shipping_address,
        )
        metrics.record_order_created(total)
        logger.info("order_created", order_id=order.id, total=total, items=len(items))

        await self.task_runner.submit(
            self.dispatch_payment,
            order.id,
            order.total,
            order.customer_email,
            name=f"dispatch-payment-{order.id}",
        )
        return order

    def build_payment_request(
        self, order_id: str, amount: float, customer_email: str
    ) -> PaymentRequest:
        return PaymentRequest(
            webhook_url=self.connectivity.resolve_callback_address(),
            sleep=settle_delay_seconds(self.runtime.admin_config.payment_delay_ms),
            data=PaymentData(
                order_id=order_id,
                amount=amount,
                currency=self.settings.payment_currency,
                customer_email=customer_email,
            ),
        )

    async def dispatch_payment(self, order_id: str, amount: float, customer_email: str) -> bool:
        """
        Submit the payment of an order to the gateway.

        Acceptance leaves the order pending until the webhook arrives. If the
        submission itself fails the order moves to error right away.

        Returns:
            bool: True if the gateway accepted the payment
        """
        request = self.build_payment_request(order_id, amount, customer_email)
        start_time = time.time()
        status_code: Optional[int] = None
        try:
            ack = await self.gateway_client.submit_payment(request)
            status_code = ack.status_code
            accepted = True
            logger.info(
                "payment_dispatched",
                order_id=order_id,
                payment_id=ack.payment_id,
                webhook_url=request.webhook_url,
                sleep=request.sleep,
            )
        except PaymentDispatchError as e:
            status_code = e.status_code or 500
            accepted = False
            logger.error("payment_dispatch_failed", order_id=order_id, error=str(e))

        duration = time.time() - start_time
        metrics.record_payment_dispatch("accepted" if accepted else "failed", duration)
        await self.broadcaster.record_request(
            RequestLog(
                source=self.runtime.service_name,
                destination="payment-service",
                method="POST",
                path=self.gateway_client.payment_path,
                status=status_code,
                duration=round(duration * 1000, 2),
            )
        )

        if not accepted:
            update = await self.store.update_status(order_id, PaymentStatus.ERROR.value)
            if update.order is not None:
                await self._publish_order(update.order)
        return accepted

    async def receive_webhook(self, raw_payload: Any) -> WebhookResult:
        """
        Apply a payment webhook.

        Raises:
            WebhookValidationError: If the payload does not identify an order
        """
        outcome = parse_webhook_payload(raw_payload)
        only_if = None
        if self.settings.webhook_policy == WebhookPolicy.PENDING_ONLY:
            only_if = {PaymentStatus.PENDING.value}

        update = await self.store.update_status(outcome.order_id, outcome.status.value, only_if)

        if not update.found:
            result = WebhookResult(outcome=outcome, result="missing_order")
            logger.warning(
                "webhook_order_not_found",
                order_id=outcome.order_id,
                payment_id=outcome.payment_id,
            )
        elif not update.applied:
            result = WebhookResult(outcome=outcome, result="ignored", order=update.order)
            logger.warning(
                "webhook_ignored_order_settled",
                order_id=outcome.order_id,
                payment_id=outcome.payment_id,
                current_status=update.previous_status,
                status=outcome.status.value,
            )
        else:
            result = WebhookResult(outcome=outcome, result="applied", order=update.order)
            logger.info(
                "webhook_applied",
                order_id=outcome.order_id,
                payment_id=outcome.payment_id,
                previous_status=update.previous_status,
                status=outcome.status.value,
            )
            await self._publish_order(update.order)
            await self.broadcaster.broadcast(PAYMENT_WEBHOOK, outcome)

        metrics.record_webhook_event(outcome.status.value, result.result)
        return result

    async def retry_payment(self, order_id: str) -> Order:
        """
        Reset a rejected or errored order to pending and dispatch it again.

        Raises:
            OrderNotFoundError: If the order does not exist
            InvalidOrderStateError: If the order is not rejected or error
        """
        update = await self.store.update_status(
            order_id, PaymentStatus.PENDING.value, only_if=RETRYABLE_STATUSES
        )
        if not update.found:
            raise OrderNotFoundError(order_id)
        if not update.applied:
            logger.warning(
                "payment_retry_rejected", order_id=order_id, status=update.previous_status
            )
            raise InvalidOrderStateError(order_id, update.previous_status)

        order = update.order
        metrics.record_payment_retry()
        logger.info(
            "payment_retry_started", order_id=order_id, previous_status=update.previous_status
        )
        await self._publish_order(order)
        await self.task_runner.submit(
            self.dispatch_payment,
            order.id,
            order.total,
            order.customer_email,
            name=f"retry-payment-{order.id}",
        )
        return order

    async def get_order(self, order_id: str) -> Order:
        order = await self.store.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def list_orders(self) -> List[Order]:
        return await self.store.list()

    async def clear_orders(self) -> int:
        """Delete every order. Returns how many were deleted."""
        deleted = await self.store.delete_all()
        metrics.record_orders_cleared(deleted)
        logger.warning("orders_cleared", deleted_count=deleted)
        return deleted

    def connection_info(self) -> Dict[str, Any]:
        return {
            "method": self.settings.connection_method.value,
            "location": self.settings.service_location.value,
            "canReceiveWebhooks": self.connectivity.can_receive_webhooks,
        }
