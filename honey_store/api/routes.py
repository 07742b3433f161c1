"""
API routes for the order backend, plus the admin, monitoring and live routes
shared with the payment gateway.

Route handlers reach their collaborators through request.app.state, which
the app factories populate.
"""
from typing import Any, Dict

import structlog
from fastapi import APIRouter, HTTPException, Request, Response, WebSocket, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from honey_store.core.broadcaster import LiveStatusBroadcaster
from honey_store.core.models import AdminConfig, AdminConfigUpdate, OrderSnapshot
from honey_store.core.orchestrator import (
    InvalidOrderStateError,
    OrderNotFoundError,
    OrderPaymentOrchestrator,
)
from honey_store.core.webhook_payloads import WebhookValidationError
from honey_store.monitoring.health import HealthCheck
from honey_store.monitoring.metrics import metrics

from .schemas import (
    ClearOrdersResponse,
    ConnectionInfoResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    HealthCheckResponse,
    OrderListResponse,
    RetryPaymentResponse,
    WebhookResponse,
)

logger = structlog.get_logger(__name__)

# Create routers
order_router = APIRouter(prefix="/orders", tags=["orders"])
webhook_router = APIRouter(prefix="/webhook", tags=["webhooks"])
connection_router = APIRouter(tags=["connectivity"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])
monitoring_router = APIRouter(tags=["monitoring"])
live_router = APIRouter(tags=["live"])


def get_orchestrator(request: Request) -> OrderPaymentOrchestrator:
    return request.app.state.orchestrator


def get_broadcaster(request: Request) -> LiveStatusBroadcaster:
    return request.app.state.broadcaster


@order_router.post(
    "",
    response_model=CreateOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an order",
    description="Store a pending order and start its payment in the background",
)
async def create_order(body: CreateOrderRequest, request: Request) -> Dict[str, Any]:
    """
    Create a new order.

    The response does not wait for the payment; the order stays pending until
    the gateway webhook arrives.
    """
    logger.info(
        "api_create_order_request",
        items=len(body.items),
        total=body.total,
    )

    order = await get_orchestrator(request).create_order(
        items=[item.model_dump(mode="json", by_alias=True) for item in body.items],
        total=body.total,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        shipping_address=body.shipping_address,
    )

    return {
        "order_id": order.id,
        "message": "Order created successfully. Payment is being processed.",
    }


@order_router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="All orders, newest first, with the backend connectivity mode",
)
async def list_orders(request: Request) -> Dict[str, Any]:
    orchestrator = get_orchestrator(request)
    orders = await orchestrator.list_orders()
    return {
        "orders": [OrderSnapshot.model_validate(order) for order in orders],
        "connection_info": orchestrator.connection_info(),
    }


@order_router.get(
    "/{order_id}",
    response_model=OrderSnapshot,
    summary="Get order",
)
async def get_order(order_id: str, request: Request) -> OrderSnapshot:
    try:
        order = await get_orchestrator(request).get_order(order_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return OrderSnapshot.model_validate(order)


@order_router.delete(
    "",
    response_model=ClearOrdersResponse,
    summary="Delete all orders",
)
async def clear_orders(request: Request) -> Dict[str, Any]:
    deleted = await get_orchestrator(request).clear_orders()
    return {"message": "All orders cleared successfully", "deleted_count": deleted}


@order_router.post(
    "/{order_id}/retry-payment",
    response_model=RetryPaymentResponse,
    summary="Retry payment",
    description="Reset a rejected or errored order to pending and dispatch its payment again",
)
async def retry_payment(order_id: str, request: Request) -> Dict[str, Any]:
    logger.info("api_retry_payment_request", order_id=order_id)

    try:
        order = await get_orchestrator(request).retry_payment(order_id)
    except OrderNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    except InvalidOrderStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "message": "Payment retry initiated successfully",
        "order_id": order.id,
        "status": order.payment_status,
    }


@webhook_router.post(
    "/payment",
    response_model=WebhookResponse,
    summary="Payment webhook",
    description="Receive a payment outcome from the gateway (flat or enveloped payload)",
)
async def payment_webhook(request: Request) -> Dict[str, Any]:
    """
    Apply a payment outcome.

    Webhooks for unknown orders are acknowledged without effect. A payload
    that does not identify an order is answered with 500.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        logger.warning("webhook_invalid_json", error=str(e))
        metrics.record_webhook_event("unknown", "invalid")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process webhook",
        )

    try:
        await get_orchestrator(request).receive_webhook(payload)
    except WebhookValidationError as e:
        logger.warning("webhook_validation_error", error=str(e))
        metrics.record_webhook_event("unknown", "invalid")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process webhook",
        )

    return {"message": "Webhook processed successfully"}


@connection_router.get(
    "/connection-info",
    response_model=ConnectionInfoResponse,
    summary="Connectivity mode",
    description="How the gateway reaches this backend",
)
async def connection_info(request: Request) -> Dict[str, Any]:
    connectivity = request.app.state.connectivity
    webhook_url = (
        connectivity.resolve_callback_address()
        if connectivity.can_receive_webhooks
        else "Not available"
    )
    return {
        "connection_method": connectivity.method.value,
        "service_location": connectivity.settings.service_location.value,
        "can_receive_webhooks": connectivity.can_receive_webhooks,
        "webhook_url": webhook_url,
    }


@admin_router.get(
    "/config",
    response_model=AdminConfig,
    summary="Get admin config",
)
async def get_admin_config(request: Request) -> AdminConfig:
    return request.app.state.runtime.admin_config


@admin_router.put(
    "/config",
    response_model=AdminConfig,
    summary="Update admin config",
    description="Merge a partial admin config and push it to live observers",
)
async def update_admin_config(update: AdminConfigUpdate, request: Request) -> AdminConfig:
    logger.info("api_update_admin_config", update=update.to_wire())
    return await get_broadcaster(request).update_admin_config(update)


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    response_model_exclude_none=True,
    summary="Health check",
    description="Check overall service health",
)
async def health(request: Request) -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    health_check: HealthCheck = request.app.state.health_check
    runtime = request.app.state.runtime
    was_healthy = runtime.service_status.healthy

    try:
        result = await health_check.check_all()
    except Exception as e:
        logger.error("health_check_error", error=str(e))
        runtime.set_healthy(False)
        result = {
            "status": "unhealthy",
            "service": runtime.service_name,
            "checks": {"error": str(e)},
        }

    if runtime.service_status.healthy != was_healthy:
        await get_broadcaster(request).publish_service_status()
    return result


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    response_model_exclude_none=True,
    summary="Liveness probe",
)
async def liveness(request: Request) -> Dict[str, Any]:
    return await request.app.state.health_check.liveness()


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@live_router.websocket("/ws")
async def live_status(websocket: WebSocket) -> None:
    """Push channel: snapshot on connect, then live events."""
    broadcaster: LiveStatusBroadcaster = websocket.app.state.broadcaster
    await broadcaster.serve(websocket)
