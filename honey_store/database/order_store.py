"""
Order store.

Owns the persisted order state. Every call opens its own session so callers
never hold an authoritative copy of an order across requests.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Collection, Dict, List, Optional

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from honey_store.database.models import Order, utcnow

logger = structlog.get_logger(__name__)


@dataclass
class StatusUpdate:
    """Result of a payment status update."""

    order: Optional[Order]
    applied: bool
    previous_status: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.order is not None


class OrderStore:
    """Async repository for Order records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(
        self,
        items: List[Dict[str, Any]],
        total: float,
        customer_name: str,
        customer_email: str,
        shipping_address: str,
    ) -> Order:
        """Persist a new order in the pending state."""
        async with self.session_factory() as session:
            order = Order(
                items=items,
                total=total,
                customer_name=customer_name,
                customer_email=customer_email,
                shipping_address=shipping_address,
                payment_status="pending",
            )
            session.add(order)
            await session.commit()
            await session.refresh(order)
            return order

    async def get(self, order_id: str) -> Optional[Order]:
        async with self.session_factory() as session:
            return await session.get(Order, order_id)

    async def list(self) -> List[Order]:
        """Return all orders, newest first."""
        async with self.session_factory() as session:
            result = await session.execute(select(Order).order_by(Order.created_at.desc()))
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(select(func.count(Order.id)))
            return int(result.scalar_one())

    async def update_status(
        self,
        order_id: str,
        status: str,
        only_if: Optional[Collection[str]] = None,
    ) -> StatusUpdate:
        """
        Set the payment status of an order.

        Args:
            order_id: Order identifier
            status: New payment status
            only_if: When given, the update is applied only if the current
                status is one of these values

        Returns:
            StatusUpdate: The order as stored after the call (None if it does
                not exist) and whether the update was applied
        """
        async with self.session_factory() as session:
            order = await session.get(Order, order_id, with_for_update=True)
            if order is None:
                return StatusUpdate(order=None, applied=False)

            previous_status = order.payment_status
            if only_if is not None and previous_status not in only_if:
                return StatusUpdate(order=order, applied=False, previous_status=previous_status)

            order.payment_status = status
            order.updated_at = utcnow()
            await session.commit()
            await session.refresh(order)

            logger.info(
                "order_status_updated",
                order_id=order_id,
                previous_status=previous_status,
                status=status,
            )
            return StatusUpdate(order=order, applied=True, previous_status=previous_status)

    async def find_pending_older_than(self, cutoff: datetime) -> List[Order]:
        """Return pending orders whose last update is older than the cutoff."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Order)
                .where(Order.payment_status == "pending", Order.updated_at < cutoff)
                .order_by(Order.updated_at)
            )
            return list(result.scalars().all())

    async def delete_all(self) -> int:
        """Delete every order unconditionally and return how many were removed."""
        async with self.session_factory() as session:
            existing = await session.execute(select(func.count(Order.id)))
            deleted = int(existing.scalar_one())
            await session.execute(delete(Order))
            await session.commit()
            return deleted
