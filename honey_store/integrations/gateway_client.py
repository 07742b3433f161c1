"""
HTTP client the order backend uses to submit payments to the gateway.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
import structlog

from honey_store.core.models import PaymentRequest

logger = structlog.get_logger(__name__)

PAYMENT_PATH = "/api/payment"


class PaymentDispatchError(Exception):
    """Raised when a payment could not be submitted to the gateway."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        """
        Initialize dispatch error.

        Args:
            message: Error message
            status_code: HTTP status returned by the gateway, if any
        """
        super().__init__(message)
        self.status_code = status_code


@dataclass
class GatewayAck:
    """Gateway acknowledgement of a submitted payment."""

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def payment_id(self) -> Optional[str]:
        return self.body.get("paymentId")


class PaymentGatewayClient:
    """
    Submits payment requests to the gateway simulator.

    Any non-error response means the gateway accepted the payment; the result
    arrives later through the webhook.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        source_service: str = "backend",
        payment_path: str = PAYMENT_PATH,
    ):
        """
        Initialize gateway client.

        Args:
            base_url: Gateway base URL
            timeout: Timeout for each submission (seconds)
            http_client: Optional shared httpx client (closed by its owner)
            source_service: Value of the X-Source-Service header
            payment_path: Path of the gateway payment endpoint
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.source_service = source_service
        self.payment_path = payment_path
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()

    @property
    def payment_url(self) -> str:
        return f"{self.base_url}{self.payment_path}"

    async def submit_payment(self, request: PaymentRequest) -> GatewayAck:
        """
        Submit one payment request.

        Returns:
            GatewayAck: Response status and body (empty body if not JSON)

        Raises:
            PaymentDispatchError: On transport errors and 4xx/5xx responses
        """
        try:
            response = await self.http_client.post(
                self.payment_url,
                json=request.to_wire(),
                headers={"X-Source-Service": self.source_service},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise PaymentDispatchError(f"Payment gateway unreachable: {e}") from e

        if response.is_error:
            raise PaymentDispatchError(
                f"Payment gateway responded with {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            logger.warning("payment_gateway_non_json_response", status_code=response.status_code)
            body = {}
        if not isinstance(body, dict):
            body = {}
        return GatewayAck(status_code=response.status_code, body=body)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
