"""
Order backend FastAPI application.

Serves the order API, receives payment webhooks from the gateway simulator
and pushes live status to dashboard observers. Includes:
- CORS configuration
- Error handling
- Request ID tracking and the live request log
- Structured logging
- Prometheus metrics
- In-process stale pending order reconciliation
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Optional

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from honey_store import __version__
from honey_store.config import Settings, get_settings
from honey_store.core.broadcaster import LiveStatusBroadcaster
from honey_store.core.connectivity import ConnectivityStrategy, resolve_strategy
from honey_store.core.orchestrator import OrderPaymentOrchestrator
from honey_store.core.reconciliation import PendingOrderReconciler
from honey_store.core.runtime import ServiceRuntime
from honey_store.core.tasks import BackgroundTaskRunner, TaskRunner
from honey_store.database import (
    OrderStore,
    close_db,
    create_engine,
    create_session_factory,
    init_db,
)
from honey_store.integrations.gateway_client import PaymentGatewayClient
from honey_store.monitoring.health import HealthCheck
from honey_store.monitoring.logging import setup_logging
from honey_store.workers.reconciliation_worker import run_reconciliation_loop

from .middleware import install_exception_handlers, install_request_middleware
from .routes import (
    admin_router,
    connection_router,
    live_router,
    monitoring_router,
    order_router,
    webhook_router,
)

logger = structlog.get_logger(__name__)

SERVICE_NAME = "backend"


@dataclass
class BackendComponents:
    """Everything one backend process owns, wired together."""

    settings: Settings
    engine: AsyncEngine
    store: OrderStore
    runtime: ServiceRuntime
    broadcaster: LiveStatusBroadcaster
    connectivity: ConnectivityStrategy
    gateway_client: PaymentGatewayClient
    task_runner: TaskRunner
    orchestrator: OrderPaymentOrchestrator
    reconciler: PendingOrderReconciler
    health_check: HealthCheck
    _reconciliation_task: Optional[asyncio.Task] = field(default=None, repr=False)
    _stop_event: Optional[asyncio.Event] = field(default=None, repr=False)

    async def start(self) -> None:
        """Create tables, reset runtime state and start the reconciliation loop."""
        if self.runtime.started:
            return

        logger.info(
            "application_startup",
            service=SERVICE_NAME,
            env=self.settings.app_env,
            connection_method=self.settings.connection_method.value,
            webhook_url=self.connectivity.resolve_callback_address(),
        )

        try:
            await init_db(self.engine)
            logger.info("database_initialized")
        except Exception as e:
            logger.error("database_initialization_failed", error=str(e))
            raise

        self.runtime.start()
        self.runtime.set_url(self.settings.backend_url)

        if self.reconciler.enabled:
            self._stop_event = asyncio.Event()
            self._reconciliation_task = asyncio.create_task(
                run_reconciliation_loop(
                    self.reconciler,
                    self.settings.reconciliation_interval_seconds,
                    self._stop_event,
                ),
                name="reconciliation-loop",
            )

    async def stop(self) -> None:
        """Stop background work and release connections."""
        if not self.runtime.started:
            return

        logger.info("application_shutdown", service=SERVICE_NAME)

        if self._reconciliation_task is not None:
            self._stop_event.set()
            await self._reconciliation_task
            self._reconciliation_task = None

        await self.task_runner.shutdown()
        await self.broadcaster.close_all()
        await self.gateway_client.aclose()

        try:
            await close_db(self.engine)
            logger.info("database_connections_closed")
        except Exception as e:
            logger.error("database_shutdown_error", error=str(e))

        self.runtime.stop()


def build_backend_components(
    settings: Settings,
    gateway_client: Optional[PaymentGatewayClient] = None,
    task_runner: Optional[TaskRunner] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> BackendComponents:
    """
    Wire the backend components for one process.

    Args:
        settings: Application settings
        gateway_client: Gateway client to use instead of one built from settings
        task_runner: Task runner (defaults to a BackgroundTaskRunner)
        http_client: httpx client for the default gateway client
    """
    engine = create_engine(settings)
    store = OrderStore(create_session_factory(engine))
    runtime = ServiceRuntime(settings, SERVICE_NAME)
    broadcaster = LiveStatusBroadcaster(runtime)
    connectivity = resolve_strategy(settings)
    gateway_client = gateway_client or PaymentGatewayClient(
        settings.payment_service_url,
        timeout=settings.payment_dispatch_timeout_seconds,
        http_client=http_client,
        source_service=SERVICE_NAME,
    )
    task_runner = task_runner or BackgroundTaskRunner()

    orchestrator = OrderPaymentOrchestrator(
        settings=settings,
        store=store,
        gateway_client=gateway_client,
        broadcaster=broadcaster,
        runtime=runtime,
        task_runner=task_runner,
        connectivity=connectivity,
    )
    reconciler = PendingOrderReconciler(
        store,
        timeout_seconds=settings.stale_pending_timeout_seconds,
        broadcaster=broadcaster,
    )

    return BackendComponents(
        settings=settings,
        engine=engine,
        store=store,
        runtime=runtime,
        broadcaster=broadcaster,
        connectivity=connectivity,
        gateway_client=gateway_client,
        task_runner=task_runner,
        orchestrator=orchestrator,
        reconciler=reconciler,
        health_check=HealthCheck(runtime, store.session_factory),
    )


def create_backend_app(
    settings: Optional[Settings] = None,
    components: Optional[BackendComponents] = None,
) -> FastAPI:
    """
    Create the order backend application.

    Args:
        settings: Application settings (defaults to get_settings())
        components: Pre-built components (defaults to build_backend_components)
    """
    settings = settings or (components.settings if components else get_settings())
    setup_logging(settings, service_name=SERVICE_NAME)
    components = components or build_backend_components(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        await components.start()
        yield
        await components.stop()

    app = FastAPI(
        title="Honey Store Order Backend",
        description=(
            "Order API of the honey store. Payments are settled asynchronously "
            "by the payment gateway through webhooks."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.components = components
    app.state.runtime = components.runtime
    app.state.broadcaster = components.broadcaster
    app.state.connectivity = components.connectivity
    app.state.orchestrator = components.orchestrator
    app.state.health_check = components.health_check

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_request_middleware(app)
    install_exception_handlers(app)

    # Include routers
    app.include_router(order_router, prefix=settings.api_prefix)
    app.include_router(webhook_router, prefix=settings.api_prefix)
    app.include_router(connection_router, prefix=settings.api_prefix)
    app.include_router(admin_router, prefix=settings.api_prefix)
    app.include_router(monitoring_router)
    app.include_router(live_router)

    @app.get("/", tags=["root"])
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "service": SERVICE_NAME,
            "version": __version__,
            "status": "operational",
            "environment": settings.app_env,
            "connectionMethod": settings.connection_method.value,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }

    return app


def main() -> None:
    """Run the order backend with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "honey_store.api.backend:create_backend_app",
        factory=True,
        host=settings.api_host,
        port=settings.backend_port,
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()
