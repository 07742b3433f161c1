"""SQLAlchemy database models for the order store."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import JSON, CheckConstraint, DateTime, Float, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

PAYMENT_STATUSES = ("pending", "approved", "rejected", "error")


def utcnow() -> datetime:
    """Timezone-aware current time used for order timestamps."""
    return datetime.now(timezone.utc)


def new_order_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Order(Base):
    """
    Orders table.

    Holds the checkout snapshot (line items, totals, customer details) and the
    payment status driven by the payment workflow.
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_order_id)
    items: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    total: Mapped[float] = mapped_column(Float, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    shipping_address: Mapped[str] = mapped_column(Text, nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "payment_status IN ('pending', 'approved', 'rejected', 'error')",
            name="valid_payment_status",
        ),
        Index("idx_orders_status_updated", "payment_status", "updated_at"),
    )

    def __repr__(self) -> str:
        """String representation of Order."""
        return (
            f"<Order(id={self.id}, total={self.total}, "
            f"payment_status={self.payment_status})>"
        )
