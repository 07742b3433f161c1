"""
Domain models shared by the order backend and the payment gateway.

All wire representations are camelCase; Python attributes stay snake_case.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from honey_store.config import ConnectionMethod, ServiceLocation
from honey_store.database.models import utcnow


class PaymentStatus(str, Enum):
    """Payment status of an order."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ERROR = "error"


RETRYABLE_STATUSES = frozenset({PaymentStatus.REJECTED.value, PaymentStatus.ERROR.value})


class CamelModel(BaseModel):
    """Base model serialising to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AdminConfig(CamelModel):
    """Operator-controlled knobs for the payment simulation."""

    simulate_payment_error: bool = False
    payment_delay_ms: int = Field(default=2000, ge=0)


class AdminConfigUpdate(CamelModel):
    """Partial admin config; unset fields keep their current value."""

    simulate_payment_error: Optional[bool] = None
    payment_delay_ms: Optional[int] = Field(default=None, ge=0)


class ServiceStatus(CamelModel):
    name: str
    healthy: bool = True
    location: ServiceLocation = ServiceLocation.LOCAL
    connection_method: ConnectionMethod = ConnectionMethod.DIRECT
    enabled: bool = True
    url: Optional[str] = None


class RequestLog(CamelModel):
    """One entry of the request log ring buffer. Duration is in milliseconds."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=utcnow)
    source: str
    destination: str
    method: str
    path: str
    status: Optional[int] = None
    duration: Optional[float] = None


class Product(CamelModel):
    """Product snapshot captured on the order line."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    name: str
    description: str = ""
    price: float = Field(ge=0)
    category: str = ""
    image_url: Optional[str] = None
    in_stock: bool = True


class OrderItem(CamelModel):
    product: Product
    quantity: int = Field(gt=0)


class OrderSnapshot(CamelModel):
    """Read model of a persisted order."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: str
    items: List[OrderItem]
    total: float
    customer_name: str
    customer_email: str
    shipping_address: str
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime


class PaymentData(CamelModel):
    """Nested payment block. Fields are optional so the gateway can acknowledge partial bodies."""

    order_id: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    customer_email: Optional[str] = None


class PaymentRequest(BaseModel):
    """
    Payment submission sent from the backend to the gateway.

    The gateway also accepts the legacy flat fields (orderId, amount,
    customerEmail) next to or instead of the nested data block.
    """

    model_config = ConfigDict(populate_by_name=True)

    webhook_url: Optional[str] = None
    sleep: Optional[float] = Field(default=None, ge=0)
    data: Optional[PaymentData] = None
    order_id: Optional[str] = Field(default=None, alias="orderId")
    amount: Optional[float] = None
    customer_email: Optional[str] = Field(default=None, alias="customerEmail")

    def resolved_order_id(self) -> Optional[str]:
        if self.data is not None and self.data.order_id:
            return self.data.order_id
        return self.order_id or None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PaymentAcceptance(CamelModel):
    payment_id: str
    status: str = "processing"
    message: str = "Payment is being processed"


class PaymentOutcome(CamelModel):
    """Canonical payment result, as delivered by the gateway webhook."""

    order_id: str
    payment_id: Optional[str] = None
    status: PaymentStatus
    message: Optional[str] = None
