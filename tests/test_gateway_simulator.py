"""
Unit tests for the payment gateway simulator.
"""
import asyncio
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import ControlledSleep, make_settings
from honey_store.config import ConnectionMethod, Settings
from honey_store.core.broadcaster import LiveStatusBroadcaster
from honey_store.core.connectivity import resolve_strategy
from honey_store.core.models import PaymentData, PaymentOutcome, PaymentRequest, PaymentStatus
from honey_store.core.runtime import ServiceRuntime
from honey_store.core.tasks import BackgroundTaskRunner, InlineTaskRunner, TaskRunner
from honey_store.gateway.simulator import PaymentGatewaySimulator, SettlementResult
from honey_store.integrations.webhook_sender import WebhookDeliveryError, WebhookSender

CALLBACK_URL = "http://backend/api/webhook/payment"
FALLBACK_URL = "http://backend-forward/api/webhook/payment"


async def no_sleep(seconds: float) -> None:
    return None


def make_simulator(
    settings: Settings,
    sender: Any,
    task_runner: Optional[TaskRunner] = None,
    sleep: Any = no_sleep,
) -> PaymentGatewaySimulator:
    runtime = ServiceRuntime(settings, "payment-service")
    runtime.start()
    return PaymentGatewaySimulator(
        settings=settings,
        runtime=runtime,
        broadcaster=LiveStatusBroadcaster(runtime),
        webhook_sender=sender,
        task_runner=task_runner or InlineTaskRunner(),
        connectivity=resolve_strategy(settings),
        sleep=sleep,
    )


def make_request(order_id: Optional[str] = "order-1", **kwargs: Any) -> PaymentRequest:
    data = None
    if order_id is not None:
        data = PaymentData(
            order_id=order_id, amount=24.99, currency="USD", customer_email="ada@example.com"
        )
    return PaymentRequest(data=data, **kwargs)


@pytest.fixture
def sender() -> MagicMock:
    sender = MagicMock(spec=WebhookSender)
    sender.deliver = AsyncMock(return_value=200)
    return sender


def delivered(sender: MagicMock, index: int = 0) -> PaymentOutcome:
    return sender.deliver.await_args_list[index].args[1]


class TestAcceptPayment:
    """Test suite for payment acceptance."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_accept_returns_processing_immediately(
        self, test_settings: Settings, sender: MagicMock
    ) -> None:
        runner = BackgroundTaskRunner()
        sleep = ControlledSleep()
        simulator = make_simulator(test_settings, sender, task_runner=runner, sleep=sleep)

        acceptance = await simulator.accept_payment(
            make_request(webhook_url=CALLBACK_URL, sleep=3)
        )

        assert acceptance.status == "processing"
        assert acceptance.message == "Payment is being processed"
        assert acceptance.payment_id
        sender.deliver.assert_not_awaited()

        sleep.release()
        await runner.drain()
        assert sleep.delays == [3]
        sender.deliver.assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_webhook_reuses_payment_id(
        self, test_settings: Settings, sender: MagicMock
    ) -> None:
        simulator = make_simulator(test_settings, sender)

        acceptance = await simulator.accept_payment(make_request(webhook_url=CALLBACK_URL, sleep=1))

        outcome = delivered(sender)
        assert outcome.order_id == "order-1"
        assert outcome.payment_id == acceptance.payment_id
        assert outcome.status == PaymentStatus.APPROVED
        assert sender.deliver.await_args.args[0] == CALLBACK_URL

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_defaults_from_connectivity_and_admin_delay(
        self, test_settings: Settings, sender: MagicMock
    ) -> None:
        sleep = AsyncMock()
        simulator = make_simulator(test_settings, sender, sleep=sleep)
        simulator.runtime.update_admin_config({"paymentDelayMs": 1500})

        await simulator.accept_payment(make_request())

        sleep.assert_awaited_once_with(1.5)
        assert sender.deliver.await_args.args[0] == CALLBACK_URL

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_legacy_flat_order_id(self, test_settings: Settings, sender: MagicMock) -> None:
        simulator = make_simulator(test_settings, sender)
        request = PaymentRequest.model_validate(
            {"orderId": "legacy-1", "amount": 10, "customerEmail": "a@b.c", "sleep": 1}
        )

        await simulator.accept_payment(request)

        assert delivered(sender).order_id == "legacy-1"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_order_id_never_settles(
        self, test_settings: Settings, sender: MagicMock
    ) -> None:
        runner = BackgroundTaskRunner()
        simulator = make_simulator(test_settings, sender, task_runner=runner)

        acceptance = await simulator.accept_payment(make_request(order_id=None))
        await runner.drain()

        assert acceptance.status == "processing"
        sender.deliver.assert_not_awaited()


class TestSettle:
    """Test suite for delayed settlement and delivery."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_simulated_error_rejects(
        self, test_settings: Settings, sender: MagicMock
    ) -> None:
        simulator = make_simulator(test_settings, sender)
        simulator.runtime.update_admin_config({"simulatePaymentError": True})

        result = await simulator.settle("order-1", "pay-1", CALLBACK_URL, 0)

        assert result == SettlementResult.DELIVERED
        assert delivered(sender).status == PaymentStatus.REJECTED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_decision_reads_flag_when_delay_elapses(
        self, test_settings: Settings, sender: MagicMock
    ) -> None:
        """Toggling the flag while a payment waits changes its outcome."""
        runner = BackgroundTaskRunner()
        sleep = ControlledSleep()
        simulator = make_simulator(test_settings, sender, task_runner=runner, sleep=sleep)

        await simulator.accept_payment(make_request(webhook_url=CALLBACK_URL, sleep=3600))
        await asyncio.wait_for(sleep.started.wait(), timeout=1)

        simulator.runtime.update_admin_config({"simulatePaymentError": True})
        sleep.release()
        await runner.drain()

        assert delivered(sender).status == PaymentStatus.REJECTED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_flag_cleared_mid_flight_approves(
        self, test_settings: Settings, sender: MagicMock
    ) -> None:
        runner = BackgroundTaskRunner()
        sleep = ControlledSleep()
        simulator = make_simulator(test_settings, sender, task_runner=runner, sleep=sleep)
        simulator.runtime.update_admin_config({"simulatePaymentError": True})

        await simulator.accept_payment(make_request(webhook_url=CALLBACK_URL, sleep=3600))
        await asyncio.wait_for(sleep.started.wait(), timeout=1)

        simulator.runtime.update_admin_config({"simulatePaymentError": False})
        sleep.release()
        await runner.drain()

        assert delivered(sender).status == PaymentStatus.APPROVED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_delivery_without_fallback_is_abandoned(
        self, test_settings: Settings, sender: MagicMock
    ) -> None:
        sender.deliver.side_effect = WebhookDeliveryError("connection refused")
        simulator = make_simulator(test_settings, sender)

        result = await simulator.settle("order-1", "pay-1", CALLBACK_URL, 0)

        assert result == SettlementResult.ABANDONED
        assert sender.deliver.await_count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_port_forward_falls_back_once_with_error(
        self, tmp_path: Any, sender: MagicMock
    ) -> None:
        settings = make_settings(
            tmp_path,
            connection_method=ConnectionMethod.PORT_FORWARD,
            fallback_webhook_timeout_seconds=2,
        )
        sender.deliver.side_effect = [WebhookDeliveryError("unreachable"), 200]
        simulator = make_simulator(settings, sender)

        result = await simulator.settle("order-1", "pay-1", CALLBACK_URL, 0)

        assert result == SettlementResult.DELIVERED_FALLBACK
        assert sender.deliver.await_count == 2
        fallback_call = sender.deliver.await_args_list[1]
        assert fallback_call.args[0] == FALLBACK_URL
        assert fallback_call.args[1].status == PaymentStatus.ERROR
        assert fallback_call.args[1].payment_id == "pay-1"
        assert fallback_call.kwargs["timeout"] == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fallback_failure_is_abandoned(self, tmp_path: Any, sender: MagicMock) -> None:
        settings = make_settings(tmp_path, connection_method=ConnectionMethod.PORT_FORWARD)
        sender.deliver.side_effect = WebhookDeliveryError("unreachable", status_code=502)
        simulator = make_simulator(settings, sender)

        result = await simulator.settle("order-1", "pay-1", CALLBACK_URL, 0)

        assert result == SettlementResult.ABANDONED
        assert sender.deliver.await_count == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_deliveries_recorded_in_request_log(
        self, tmp_path: Any, sender: MagicMock
    ) -> None:
        settings = make_settings(tmp_path, connection_method=ConnectionMethod.PORT_FORWARD)
        sender.deliver.side_effect = [WebhookDeliveryError("bad gateway", status_code=502), 200]
        simulator = make_simulator(settings, sender)

        await simulator.settle("order-1", "pay-1", CALLBACK_URL, 0)

        entries = simulator.runtime.request_logs.snapshot()
        assert [(entry.destination, entry.status) for entry in entries] == [
            ("backend", 502),
            ("backend", 200),
        ]
        assert all(entry.path == "/api/webhook/payment" for entry in entries)
