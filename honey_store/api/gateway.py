"""
Payment gateway simulator FastAPI application.

Accepts payments with 202, settles them after a delay and posts the outcome
to the order backend webhook. Operators steer the simulation through the
admin config (HTTP or the live WebSocket channel).
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from honey_store import __version__
from honey_store.config import Settings, get_settings
from honey_store.core.broadcaster import LiveStatusBroadcaster
from honey_store.core.connectivity import ConnectivityStrategy, resolve_strategy
from honey_store.core.runtime import ServiceRuntime
from honey_store.core.tasks import BackgroundTaskRunner, TaskRunner
from honey_store.gateway.simulator import PaymentGatewaySimulator, SleepFunc
from honey_store.integrations.webhook_sender import WebhookSender
from honey_store.monitoring.health import HealthCheck
from honey_store.monitoring.logging import setup_logging

from .gateway_routes import payment_router
from .middleware import install_exception_handlers, install_request_middleware
from .routes import admin_router, live_router, monitoring_router

logger = structlog.get_logger(__name__)

SERVICE_NAME = "payment-service"


@dataclass
class GatewayComponents:
    """Everything one gateway process owns, wired together."""

    settings: Settings
    runtime: ServiceRuntime
    broadcaster: LiveStatusBroadcaster
    connectivity: ConnectivityStrategy
    webhook_sender: WebhookSender
    task_runner: TaskRunner
    simulator: PaymentGatewaySimulator
    health_check: HealthCheck

    async def start(self) -> None:
        if self.runtime.started:
            return
        logger.info(
            "application_startup",
            service=SERVICE_NAME,
            env=self.settings.app_env,
            connection_method=self.settings.connection_method.value,
            fallback_webhook_url=self.connectivity.fallback_callback_address(),
        )
        self.runtime.start()
        self.runtime.set_url(self.settings.payment_service_url)

    async def stop(self) -> None:
        if not self.runtime.started:
            return
        logger.info("application_shutdown", service=SERVICE_NAME)
        await self.task_runner.shutdown()
        await self.broadcaster.close_all()
        await self.webhook_sender.aclose()
        self.runtime.stop()


def build_gateway_components(
    settings: Settings,
    webhook_sender: Optional[WebhookSender] = None,
    task_runner: Optional[TaskRunner] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    sleep: Optional[SleepFunc] = None,
) -> GatewayComponents:
    """
    Wire the gateway components for one process.

    Args:
        settings: Application settings
        webhook_sender: Sender to use instead of one built from http_client
        task_runner: Task runner (defaults to a BackgroundTaskRunner)
        http_client: httpx client for the default webhook sender
        sleep: Settlement delay function (defaults to asyncio.sleep)
    """
    runtime = ServiceRuntime(settings, SERVICE_NAME)
    broadcaster = LiveStatusBroadcaster(runtime)
    connectivity = resolve_strategy(settings)
    webhook_sender = webhook_sender or WebhookSender(
        http_client=http_client, source_service=SERVICE_NAME
    )
    task_runner = task_runner or BackgroundTaskRunner()

    simulator_kwargs: dict[str, Any] = {}
    if sleep is not None:
        simulator_kwargs["sleep"] = sleep
    simulator = PaymentGatewaySimulator(
        settings=settings,
        runtime=runtime,
        broadcaster=broadcaster,
        webhook_sender=webhook_sender,
        task_runner=task_runner,
        connectivity=connectivity,
        **simulator_kwargs,
    )

    return GatewayComponents(
        settings=settings,
        runtime=runtime,
        broadcaster=broadcaster,
        connectivity=connectivity,
        webhook_sender=webhook_sender,
        task_runner=task_runner,
        simulator=simulator,
        health_check=HealthCheck(runtime),
    )


def create_gateway_app(
    settings: Optional[Settings] = None,
    components: Optional[GatewayComponents] = None,
) -> FastAPI:
    """
    Create the payment gateway simulator application.

    Args:
        settings: Application settings (defaults to get_settings())
        components: Pre-built components (defaults to build_gateway_components)
    """
    settings = settings or (components.settings if components else get_settings())
    setup_logging(settings, service_name=SERVICE_NAME)
    components = components or build_gateway_components(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        await components.start()
        yield
        await components.stop()

    app = FastAPI(
        title="Honey Store Payment Gateway Simulator",
        description="Simulated payment gateway with asynchronous webhook settlement.",
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
    app.state.simulator = components.simulator
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
    app.include_router(payment_router, prefix=settings.api_prefix)
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
    """Run the payment gateway simulator with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "honey_store.api.gateway:create_gateway_app",
        factory=True,
        host=settings.api_host,
        port=settings.gateway_port,
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()
