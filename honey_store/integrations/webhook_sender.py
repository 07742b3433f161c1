"""
Webhook delivery from the gateway simulator to the order backend.
"""
from typing import Optional

import httpx

from honey_store.core.models import PaymentOutcome


class WebhookDeliveryError(Exception):
    """Raised when a payment outcome could not be delivered."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class WebhookSender:
    """Posts payment outcomes to callback URLs."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        source_service: str = "payment-service",
    ):
        self.source_service = source_service
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()

    async def deliver(
        self, url: str, outcome: PaymentOutcome, timeout: Optional[float] = None
    ) -> int:
        """
        Deliver one outcome.

        Args:
            url: Callback URL
            outcome: Payment outcome to post (flat shape)
            timeout: Timeout in seconds; None keeps the client default

        Returns:
            int: HTTP status of the callback response

        Raises:
            WebhookDeliveryError: On transport errors and 4xx/5xx responses
        """
        try:
            response = await self.http_client.post(
                url,
                json=outcome.to_wire(),
                headers={"X-Source-Service": self.source_service},
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.HTTPError as e:
            raise WebhookDeliveryError(f"Webhook delivery to {url} failed: {e}") from e

        if response.is_error:
            raise WebhookDeliveryError(
                f"Webhook endpoint {url} responded with {response.status_code}",
                status_code=response.status_code,
            )
        return response.status_code

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
