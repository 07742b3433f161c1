"""
HTTP and WebSocket surfaces of the order backend and the payment gateway.
"""
from .backend import BackendComponents, build_backend_components, create_backend_app
from .gateway import GatewayComponents, build_gateway_components, create_gateway_app

__all__ = [
    "BackendComponents",
    "GatewayComponents",
    "build_backend_components",
    "build_gateway_components",
    "create_backend_app",
    "create_gateway_app",
]
