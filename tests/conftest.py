"""
Pytest configuration and fixtures.
"""
import asyncio
from typing import Any, AsyncGenerator, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from honey_store.api.backend import BackendComponents, build_backend_components, create_backend_app
from honey_store.api.gateway import GatewayComponents, build_gateway_components, create_gateway_app
from honey_store.config import Settings
from honey_store.core.broadcaster import LiveStatusBroadcaster
from honey_store.core.connectivity import resolve_strategy
from honey_store.core.orchestrator import OrderPaymentOrchestrator
from honey_store.core.runtime import ServiceRuntime
from honey_store.core.tasks import BackgroundTaskRunner, InlineTaskRunner
from honey_store.database import (
    OrderStore,
    close_db,
    create_engine,
    create_session_factory,
    init_db,
)
from honey_store.integrations.gateway_client import PAYMENT_PATH, GatewayAck, PaymentGatewayClient


class FakeNetwork:
    """
    ASGI app routing requests to registered apps by host name.

    Hosts can be taken offline to simulate an unreachable service.
    """

    def __init__(self) -> None:
        self.apps: Dict[str, Any] = {}
        self.offline: set = set()

    def register(self, host: str, app: Any) -> None:
        self.apps[host] = app

    def take_offline(self, host: str) -> None:
        self.offline.add(host)

    async def __call__(self, scope: Dict[str, Any], receive: Any, send: Any) -> None:
        host = scope["server"][0]
        if host in self.offline or host not in self.apps:
            raise httpx.ConnectError(f"Host unreachable: {host}")
        await self.apps[host](scope, receive, send)


class ControlledSleep:
    """Settlement delay that only elapses when the test releases it."""

    def __init__(self) -> None:
        self.delays: List[float] = []
        self.started = asyncio.Event()
        self._released = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.started.set()
        await self._released.wait()

    def release(self) -> None:
        self._released.set()


def make_settings(tmp_path: Any, **overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "app_name": "honey-store-test",
        "app_env": "test",
        "log_level": "DEBUG",
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}",
        "backend_url": "http://backend",
        "payment_service_url": "http://payment-service",
        "alternative_backend_url": "http://backend-forward",
        "default_payment_delay_ms": 1000,
        "stale_pending_timeout_seconds": 0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings(tmp_path: Any) -> Settings:
    """Create test settings backed by a temporary SQLite database."""
    return make_settings(tmp_path)


@pytest_asyncio.fixture
async def engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, Any]:
    engine = create_engine(test_settings)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def store(engine: AsyncEngine) -> OrderStore:
    return OrderStore(create_session_factory(engine))


@pytest.fixture
def runtime(test_settings: Settings) -> ServiceRuntime:
    runtime = ServiceRuntime(test_settings, "backend")
    runtime.start()
    return runtime


@pytest.fixture
def broadcaster(runtime: ServiceRuntime) -> LiveStatusBroadcaster:
    return LiveStatusBroadcaster(runtime)


@pytest.fixture
def gateway_client() -> MagicMock:
    """Gateway client that accepts every payment."""
    client = MagicMock(spec=PaymentGatewayClient)
    client.payment_path = PAYMENT_PATH
    client.submit_payment = AsyncMock(
        return_value=GatewayAck(
            status_code=202, body={"paymentId": "pay_test", "status": "processing"}
        )
    )
    return client


@pytest.fixture
def orchestrator(
    test_settings: Settings,
    store: OrderStore,
    gateway_client: MagicMock,
    broadcaster: LiveStatusBroadcaster,
    runtime: ServiceRuntime,
) -> OrderPaymentOrchestrator:
    return OrderPaymentOrchestrator(
        settings=test_settings,
        store=store,
        gateway_client=gateway_client,
        broadcaster=broadcaster,
        runtime=runtime,
        task_runner=InlineTaskRunner(),
        connectivity=resolve_strategy(test_settings),
    )


@pytest.fixture
def sample_items() -> List[Dict[str, Any]]:
    return [
        {
            "product": {
                "id": "1",
                "name": "Wildflower Honey",
                "description": "Raw wildflower honey, 500g",
                "price": 12.5,
                "category": "honey",
                "imageUrl": "/assets/wildflower.jpg",
                "inStock": True,
            },
            "quantity": 2,
        }
    ]


@pytest.fixture
def sample_order_data(sample_items: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Sample create-order request body."""
    return {
        "items": sample_items,
        "total": 24.99,
        "customerName": "Ada Keeper",
        "customerEmail": "ada@example.com",
        "shippingAddress": "1 Apiary Lane",
    }


@pytest_asyncio.fixture
async def backend_components(
    test_settings: Settings, gateway_client: MagicMock
) -> AsyncGenerator[BackendComponents, Any]:
    components = build_backend_components(
        test_settings, gateway_client=gateway_client, task_runner=BackgroundTaskRunner()
    )
    await components.start()
    yield components
    await components.stop()


@pytest_asyncio.fixture
async def client(backend_components: BackendComponents) -> AsyncGenerator[httpx.AsyncClient, Any]:
    """Create test HTTP client for the order backend."""
    app = create_backend_app(components=backend_components)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://backend"
    ) as ac:
        yield ac


class LinkedServices:
    """Backend and gateway wired to each other through a FakeNetwork."""

    def __init__(
        self,
        settings: Settings,
        sleep: Optional[ControlledSleep] = None,
    ) -> None:
        self.settings = settings
        self.sleep = sleep or ControlledSleep()
        self.network = FakeNetwork()
        self.network_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=self.network))

        self.backend: BackendComponents = build_backend_components(
            settings, task_runner=BackgroundTaskRunner(), http_client=self.network_client
        )
        self.gateway: GatewayComponents = build_gateway_components(
            settings,
            task_runner=BackgroundTaskRunner(),
            http_client=self.network_client,
            sleep=self.sleep,
        )
        self.backend_app = create_backend_app(components=self.backend)
        self.gateway_app = create_gateway_app(components=self.gateway)

        self.network.register("backend", self.backend_app)
        self.network.register("backend-forward", self.backend_app)
        self.network.register("payment-service", self.gateway_app)

    def backend_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.backend_app), base_url="http://backend"
        )

    async def settle_all(self) -> None:
        """Run dispatches, release the settlement delay and deliver webhooks."""
        await self.backend.task_runner.drain()
        self.sleep.release()
        await self.gateway.task_runner.drain()

    async def start(self) -> None:
        await self.backend.start()
        await self.gateway.start()

    async def stop(self) -> None:
        self.sleep.release()
        await self.gateway.stop()
        await self.backend.stop()
        await self.network_client.aclose()


@pytest_asyncio.fixture
async def services(test_settings: Settings) -> AsyncGenerator[LinkedServices, Any]:
    linked = LinkedServices(test_settings)
    await linked.start()
    yield linked
    await linked.stop()
