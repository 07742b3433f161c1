"""
Pydantic schemas for API request/response models.

Field names are snake_case in Python and camelCase on the wire.
"""
from typing import Any, Dict, List, Optional

from pydantic import Field

from honey_store.core.models import CamelModel, OrderItem, OrderSnapshot


class CreateOrderRequest(CamelModel):
    """Request schema for creating an order."""

    items: List[OrderItem] = Field(..., description="Cart lines")
    total: float = Field(..., ge=0, description="Order total")
    customer_name: str = Field(..., description="Customer name")
    customer_email: str = Field(..., description="Customer email")
    shipping_address: str = Field(..., description="Shipping address")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {
                            "product": {
                                "id": "1",
                                "name": "Wildflower Honey",
                                "description": "Raw wildflower honey, 500g",
                                "price": 12.5,
                                "category": "honey",
                                "imageUrl": "/assets/wildflower.jpg",
                                "inStock": True,
                            },
                            "quantity": 2,
                        }
                    ],
                    "total": 25.0,
                    "customerName": "Ada Keeper",
                    "customerEmail": "ada@example.com",
                    "shippingAddress": "1 Apiary Lane",
                }
            ]
        }
    }


class CreateOrderResponse(CamelModel):
    order_id: str = Field(..., description="Order ID")
    message: str = Field(..., description="Status message")


class ConnectionInfo(CamelModel):
    method: str
    location: str
    can_receive_webhooks: bool


class OrderListResponse(CamelModel):
    orders: List[OrderSnapshot]
    connection_info: ConnectionInfo


class ClearOrdersResponse(CamelModel):
    message: str
    deleted_count: int


class RetryPaymentResponse(CamelModel):
    message: str
    order_id: str
    status: str


class WebhookResponse(CamelModel):
    message: str


class ConnectionInfoResponse(CamelModel):
    connection_method: str
    service_location: str
    can_receive_webhooks: bool
    webhook_url: str


class PaymentAcceptedResponse(CamelModel):
    """Response schema for a payment accepted by the gateway."""

    payment_id: str = Field(..., description="Gateway payment ID")
    status: str = Field(..., description="Always 'processing'")
    message: str = Field(..., description="Status message")


class HealthCheckResponse(CamelModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/unhealthy)")
    service: str = Field(..., description="Service name")
    location: Optional[str] = Field(default=None, description="Service location")
    connection_method: Optional[str] = Field(default=None, description="Connection method")
    database: Optional[str] = Field(default=None, description="Database connectivity")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual checks")
    message: Optional[str] = Field(default=None, description="Status message")
