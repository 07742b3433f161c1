"""
End-to-end tests: order backend and gateway simulator talking over HTTP.

Both applications run in-process and reach each other through a FakeNetwork
ASGI router, so the full dispatch, settlement and webhook path is exercised.
"""
from datetime import datetime
from typing import Any, AsyncGenerator, Dict

import pytest
import pytest_asyncio

from conftest import LinkedServices, make_settings
from honey_store.config import ConnectionMethod
from honey_store.core.reconciliation import PendingOrderReconciler


def parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest_asyncio.fixture
async def port_forward_services(tmp_path: Any) -> AsyncGenerator[LinkedServices, Any]:
    settings = make_settings(tmp_path, connection_method=ConnectionMethod.PORT_FORWARD)
    linked = LinkedServices(settings)
    await linked.start()
    yield linked
    await linked.stop()


class TestOrderPaymentFlow:
    """End-to-end payment settlement scenarios."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_order_settles_to_approved(
        self, services: LinkedServices, sample_order_data: Dict[str, Any]
    ) -> None:
        async with services.backend_client() as client:
            response = await client.post("/api/orders", json=sample_order_data)
            assert response.status_code == 201
            order_id = response.json()["orderId"]

            pending = (await client.get(f"/api/orders/{order_id}")).json()
            assert pending["paymentStatus"] == "pending"
            assert pending["total"] == pytest.approx(24.99)

            await services.settle_all()

            approved = (await client.get(f"/api/orders/{order_id}")).json()

        assert approved["paymentStatus"] == "approved"
        assert parse_time(approved["updatedAt"]) > parse_time(pending["updatedAt"])
        assert services.sleep.delays == [1]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_simulated_error_settles_to_rejected_then_retry_approves(
        self, services: LinkedServices, sample_order_data: Dict[str, Any]
    ) -> None:
        services.gateway.runtime.update_admin_config({"simulatePaymentError": True})

        async with services.backend_client() as client:
            order_id = (await client.post("/api/orders", json=sample_order_data)).json()["orderId"]
            await services.settle_all()
            rejected = (await client.get(f"/api/orders/{order_id}")).json()
            assert rejected["paymentStatus"] == "rejected"

            services.gateway.runtime.update_admin_config({"simulatePaymentError": False})
            retry = await client.post(f"/api/orders/{order_id}/retry-payment")
            assert retry.status_code == 200
            await services.settle_all()

            order = (await client.get(f"/api/orders/{order_id}")).json()

        assert order["paymentStatus"] == "approved"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_lost_webhook_leaves_order_pending(
        self, services: LinkedServices, sample_order_data: Dict[str, Any]
    ) -> None:
        """Without a fallback address a failed delivery is never retried."""
        async with services.backend_client() as client:
            order_id = (await client.post("/api/orders", json=sample_order_data)).json()["orderId"]
            await services.backend.task_runner.drain()

            services.network.take_offline("backend")
            await services.settle_all()

            order = (await client.get(f"/api/orders/{order_id}")).json()
            assert order["paymentStatus"] == "pending"

            reconciler = PendingOrderReconciler(services.backend.store, timeout_seconds=600)
            assert await reconciler.sweep() == []

            order = (await client.get(f"/api/orders/{order_id}")).json()

        assert order["paymentStatus"] == "pending"
        assert services.gateway.task_runner.pending == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_port_forward_fallback_marks_rejected(
        self, port_forward_services: LinkedServices, sample_order_data: Dict[str, Any]
    ) -> None:
        services = port_forward_services
        async with services.backend_client() as client:
            order_id = (await client.post("/api/orders", json=sample_order_data)).json()["orderId"]
            await services.backend.task_runner.drain()

            services.network.take_offline("backend")
            await services.settle_all()

            order = (await client.get(f"/api/orders/{order_id}")).json()

        assert order["paymentStatus"] == "rejected"
        paths = [
            (entry.destination, entry.status)
            for entry in services.gateway.runtime.request_logs.snapshot()
            if entry.source == "payment-service"
        ]
        assert paths == [("backend", 500), ("backend", 200)]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_gateway_unreachable_marks_error(
        self, services: LinkedServices, sample_order_data: Dict[str, Any]
    ) -> None:
        services.network.take_offline("payment-service")

        async with services.backend_client() as client:
            response = await client.post("/api/orders", json=sample_order_data)
            assert response.status_code == 201
            await services.backend.task_runner.drain()

            order = (await client.get(f"/api/orders/{response.json()['orderId']}")).json()

        assert order["paymentStatus"] == "error"
