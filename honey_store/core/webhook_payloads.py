"""
Payment webhook payload parsing.

The backend accepts two payload shapes:

- flat:      {"orderId", "paymentId", "status", "message"}
- enveloped: {"payment_id", "data": {"orderId", ...}}

Both are parsed into a PaymentOutcome before any state transition runs.
An enveloped payload without a status means the payment was approved.
Incoming statuses are normalised: "approved" stays approved, everything else
becomes "rejected".
"""
from typing import Any, Dict, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from honey_store.core.models import CamelModel, PaymentOutcome, PaymentStatus


class WebhookValidationError(Exception):
    """Raised when a webhook payload does not identify an order."""

    pass


def normalize_status(status: Optional[str]) -> PaymentStatus:
    if status is not None and str(status).strip().lower() == PaymentStatus.APPROVED.value:
        return PaymentStatus.APPROVED
    return PaymentStatus.REJECTED


class FlatPayload(CamelModel):
    order_id: str = Field(min_length=1)
    payment_id: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None

    def to_outcome(self) -> PaymentOutcome:
        return PaymentOutcome(
            order_id=self.order_id,
            payment_id=self.payment_id,
            status=normalize_status(self.status),
            message=self.message,
        )


class EnvelopeData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    order_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("orderId", "order_id")
    )
    status: Optional[str] = None
    message: Optional[str] = None


class EnvelopedPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("payment_id", "paymentId")
    )
    data: EnvelopeData
    status: Optional[str] = None
    message: Optional[str] = None

    def to_outcome(self) -> PaymentOutcome:
        if not self.data.order_id:
            raise WebhookValidationError("Webhook data envelope has no orderId")
        status = self.data.status or self.status or PaymentStatus.APPROVED.value
        return PaymentOutcome(
            order_id=self.data.order_id,
            payment_id=self.payment_id,
            status=normalize_status(status),
            message=self.data.message or self.message,
        )


WebhookPayload = Union[FlatPayload, EnvelopedPayload]


def classify_payload(raw: Dict[str, Any]) -> WebhookPayload:
    """
    Pick the payload variant.

    The enveloped shape wins when "data" carries an order id; otherwise the
    payload is read as flat.

    Raises:
        WebhookValidationError: If neither shape yields an order id
    """
    data = raw.get("data")
    try:
        if isinstance(data, dict) and (data.get("orderId") or data.get("order_id")):
            return EnvelopedPayload.model_validate(raw)
        if raw.get("orderId"):
            return FlatPayload.model_validate(raw)
    except ValidationError as e:
        raise WebhookValidationError(f"Malformed webhook payload: {e}") from e
    raise WebhookValidationError("Webhook payload has no orderId")


def parse_webhook_payload(raw: Any) -> PaymentOutcome:
    """
    Parse a raw webhook body into its canonical outcome.

    Args:
        raw: Decoded JSON body

    Returns:
        PaymentOutcome: Outcome with a normalised status

    Raises:
        WebhookValidationError: If the body is not an object or has no order id
    """
    if not isinstance(raw, dict):
        raise WebhookValidationError("Webhook payload must be a JSON object")
    return classify_payload(raw).to_outcome()
