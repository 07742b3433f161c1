"""Database package for the order store."""
from .connection import close_db, create_engine, create_session_factory, init_db
from .models import PAYMENT_STATUSES, Base, Order
from .order_store import OrderStore, StatusUpdate

__all__ = [
    "Base",
    "Order",
    "OrderStore",
    "PAYMENT_STATUSES",
    "StatusUpdate",
    "close_db",
    "create_engine",
    "create_session_factory",
    "init_db",
]
