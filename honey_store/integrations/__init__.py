"""HTTP integrations between the order backend and the payment gateway."""
from .gateway_client import GatewayAck, PaymentDispatchError, PaymentGatewayClient
from .webhook_sender import WebhookDeliveryError, WebhookSender

__all__ = [
    "GatewayAck",
    "PaymentDispatchError",
    "PaymentGatewayClient",
    "WebhookDeliveryError",
    "WebhookSender",
]
