"""
Connectivity strategies.

Each ConnectionMethod maps to exactly one strategy that knows where the
gateway should deliver webhooks and whether a fallback address exists.
"""
from typing import Dict, Optional, Type

from honey_store.config import ConnectionMethod, Settings


def _join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class ConnectivityStrategy:
    """Direct in-cluster connectivity; base for the other methods."""

    method = ConnectionMethod.DIRECT
    can_receive_webhooks = True

    def __init__(self, settings: Settings):
        self.settings = settings

    def resolve_callback_address(self) -> str:
        """Primary URL the gateway posts payment outcomes to."""
        return _join_url(self.settings.backend_url, self.settings.webhook_path)

    def fallback_callback_address(self) -> Optional[str]:
        """Secondary URL tried once after a failed delivery, if any."""
        return None

    @property
    def uses_fallback(self) -> bool:
        return self.fallback_callback_address() is not None


class TelepresenceConnectivity(ConnectivityStrategy):
    method = ConnectionMethod.TELEPRESENCE


class NoConnectivity(ConnectivityStrategy):
    method = ConnectionMethod.NONE


class NgrokConnectivity(ConnectivityStrategy):
    """Backend exposed through a public tunnel."""

    method = ConnectionMethod.NGROK

    def resolve_callback_address(self) -> str:
        base_url = self.settings.public_backend_url or self.settings.backend_url
        return _join_url(base_url, self.settings.webhook_path)


class PortForwardConnectivity(ConnectivityStrategy):
    """
    Backend reached through a local port forward.

    The cluster address is usually unreachable from the gateway in this
    mode, so failed deliveries are retried once against the forwarded port.
    """

    method = ConnectionMethod.PORT_FORWARD
    can_receive_webhooks = False

    def fallback_callback_address(self) -> Optional[str]:
        return _join_url(self.settings.alternative_backend_url, self.settings.webhook_path)


_STRATEGIES: Dict[ConnectionMethod, Type[ConnectivityStrategy]] = {
    ConnectionMethod.DIRECT: ConnectivityStrategy,
    ConnectionMethod.TELEPRESENCE: TelepresenceConnectivity,
    ConnectionMethod.NONE: NoConnectivity,
    ConnectionMethod.NGROK: NgrokConnectivity,
    ConnectionMethod.PORT_FORWARD: PortForwardConnectivity,
}


def resolve_strategy(settings: Settings) -> ConnectivityStrategy:
    """Build the strategy for the configured connection method."""
    return _STRATEGIES[settings.connection_method](settings)
