"""Closed value sets used by settings and runtime state."""
from enum import Enum


class ServiceLocation(str, Enum):
    """Where a service process runs relative to the cluster."""

    LOCAL = "local"
    CLOUD = "cloud"


class ConnectionMethod(str, Enum):
    """How the two services reach each other."""

    DIRECT = "direct"
    PORT_FORWARD = "port-forward"
    NGROK = "ngrok"
    TELEPRESENCE = "telepresence"
    NONE = "none"


class WebhookPolicy(str, Enum):
    """How payment webhooks interact with the current order status."""

    OVERWRITE = "overwrite"  # every webhook wins
    PENDING_ONLY = "pending-only"  # settled orders ignore later webhooks
