"""Configuration package for the honey store services."""
from .enums import ConnectionMethod, ServiceLocation, WebhookPolicy
from .settings import Settings, get_settings

__all__ = [
    "ConnectionMethod",
    "ServiceLocation",
    "Settings",
    "WebhookPolicy",
    "get_settings",
]
