"""
API routes of the payment gateway simulator.
"""
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Request, status

from honey_store.core.models import PaymentRequest
from honey_store.gateway.simulator import PaymentGatewaySimulator

from .schemas import PaymentAcceptedResponse

logger = structlog.get_logger(__name__)

payment_router = APIRouter(prefix="/payment", tags=["payments"])


@payment_router.post(
    "",
    response_model=PaymentAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a payment",
    description="Accept a payment and settle it later through the webhook URL",
)
async def submit_payment(body: PaymentRequest, request: Request) -> Dict[str, Any]:
    """
    Accept a payment.

    The response is sent before settlement; the outcome is posted to the
    webhook URL once the requested delay has elapsed.
    """
    simulator: PaymentGatewaySimulator = request.app.state.simulator
    logger.info(
        "api_submit_payment_request",
        order_id=body.resolved_order_id(),
        webhook_url=body.webhook_url,
        sleep=body.sleep,
    )

    acceptance = await simulator.accept_payment(body)
    return acceptance.model_dump()
