"""
Payment gateway simulator.

Accepts a payment immediately, waits the requested delay, then decides the
outcome from the admin flag simulatePaymentError as it is *when the delay
elapses*, and posts the result to the callback URL. A failed delivery is
retried at most once, with an error outcome, against the fallback address of
the connectivity strategy. Nothing is persisted: if both deliveries fail the
settlement signal is lost.
"""
import asyncio
import time
import uuid
from enum import Enum
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

import structlog

from honey_store.config import Settings
from honey_store.core.broadcaster import LiveStatusBroadcaster
from honey_store.core.connectivity import ConnectivityStrategy
from honey_store.core.models import (
    PaymentAcceptance,
    PaymentOutcome,
    PaymentRequest,
    PaymentStatus,
    RequestLog,
)
from honey_store.core.runtime import ServiceRuntime
from honey_store.core.tasks import TaskRunner
from honey_store.integrations.webhook_sender import WebhookDeliveryError, WebhookSender
from honey_store.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class SettlementResult(str, Enum):
    DELIVERED = "delivered"
    DELIVERED_FALLBACK = "delivered_fallback"
    ABANDONED = "abandoned"


def new_payment_id() -> str:
    return uuid.uuid4().hex[:13]


class PaymentGatewaySimulator:
    """Accepts payments and settles them asynchronously through webhooks."""

    def __init__(
        self,
        settings: Settings,
        runtime: ServiceRuntime,
        broadcaster: LiveStatusBroadcaster,
        webhook_sender: WebhookSender,
        task_runner: TaskRunner,
        connectivity: ConnectivityStrategy,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.settings = settings
        self.runtime = runtime
        self.broadcaster = broadcaster
        self.webhook_sender = webhook_sender
        self.task_runner = task_runner
        self.connectivity = connectivity
        self.sleep = sleep

    def _delay_seconds(self, request: PaymentRequest) -> float:
        if request.sleep is not None:
            return request.sleep
        return self.runtime.admin_config.payment_delay_ms / 1000

    async def accept_payment(self, request: PaymentRequest) -> PaymentAcceptance:
        """
        Accept a payment and schedule its settlement.

        A request without an order id is acknowledged like any other, but no
        settlement is scheduled and no webhook will ever be sent for it.
        """
        acceptance = PaymentAcceptance(payment_id=new_payment_id())
        metrics.record_gateway_payment_accepted()

        order_id = request.resolved_order_id()
        if not order_id:
            logger.warning(
                "payment_request_missing_order_id",
                payment_id=acceptance.payment_id,
            )
            return acceptance

        webhook_url = request.webhook_url or self.connectivity.resolve_callback_address()
        delay = self._delay_seconds(request)
        logger.info(
            "payment_accepted",
            order_id=order_id,
            payment_id=acceptance.payment_id,
            webhook_url=webhook_url,
            delay_seconds=delay,
        )
        await self.task_runner.submit(
            self.settle,
            order_id,
            acceptance.payment_id,
            webhook_url,
            delay,
            name=f"settle-payment-{acceptance.payment_id}",
        )
        return acceptance

    def _decide(self, order_id: str, payment_id: str) -> PaymentOutcome:
        if self.runtime.admin_config.simulate_payment_error:
            return PaymentOutcome(
                order_id=order_id,
                payment_id=payment_id,
                status=PaymentStatus.REJECTED,
                message="Payment rejected due to simulated error",
            )
        return PaymentOutcome(
            order_id=order_id,
            payment_id=payment_id,
            status=PaymentStatus.APPROVED,
            message="Payment approved successfully",
        )

    async def _deliver(
        self, url: str, outcome: PaymentOutcome, timeout: Optional[float] = None
    ) -> None:
        start_time = time.time()
        status_code: Optional[int] = None
        try:
            status_code = await self.webhook_sender.deliver(url, outcome, timeout=timeout)
        except WebhookDeliveryError as e:
            status_code = e.status_code or 500
            raise
        finally:
            await self.broadcaster.record_request(
                RequestLog(
                    source=self.runtime.service_name,
                    destination="backend",
                    method="POST",
                    path=urlparse(url).path or url,
                    status=status_code,
                    duration=round((time.time() - start_time) * 1000, 2),
                )
            )

    async def settle(
        self, order_id: str, payment_id: str, webhook_url: str, delay_seconds: float
    ) -> SettlementResult:
        """Wait, decide and deliver the outcome of one payment."""
        await self.sleep(delay_seconds)

        outcome = self._decide(order_id, payment_id)
        try:
            await self._deliver(webhook_url, outcome)
        except WebhookDeliveryError as e:
            logger.error(
                "webhook_delivery_failed",
                order_id=order_id,
                payment_id=payment_id,
                webhook_url=webhook_url,
                error=str(e),
            )
        else:
            logger.info(
                "webhook_delivered",
                order_id=order_id,
                payment_id=payment_id,
                status=outcome.status.value,
            )
            metrics.record_gateway_settlement(
                outcome.status.value, SettlementResult.DELIVERED.value
            )
            return SettlementResult.DELIVERED

        fallback_url = self.connectivity.fallback_callback_address()
        if fallback_url is None:
            logger.warning(
                "webhook_abandoned_no_fallback",
                order_id=order_id,
                payment_id=payment_id,
                connection_method=self.connectivity.method.value,
            )
            metrics.record_gateway_settlement(
                outcome.status.value, SettlementResult.ABANDONED.value
            )
            return SettlementResult.ABANDONED

        error_outcome = PaymentOutcome(
            order_id=order_id,
            payment_id=payment_id,
            status=PaymentStatus.ERROR,
            message="Payment processing failed - webhook could not be delivered",
        )
        try:
            await self._deliver(
                fallback_url,
                error_outcome,
                timeout=self.settings.fallback_webhook_timeout_seconds,
            )
        except WebhookDeliveryError as e:
            logger.error(
                "fallback_webhook_delivery_failed",
                order_id=order_id,
                payment_id=payment_id,
                webhook_url=fallback_url,
                error=str(e),
            )
            metrics.record_gateway_settlement(
                error_outcome.status.value, SettlementResult.ABANDONED.value
            )
            return SettlementResult.ABANDONED

        logger.info(
            "fallback_webhook_delivered",
            order_id=order_id,
            payment_id=payment_id,
            webhook_url=fallback_url,
        )
        metrics.record_gateway_settlement(
            error_outcome.status.value, SettlementResult.DELIVERED_FALLBACK.value
        )
        return SettlementResult.DELIVERED_FALLBACK
