"""
Order repository — predicate reads and atomic conditional writes.

Every write is a single UPDATE whose WHERE clause restates the predicate the
caller selected on, so a record that changed between the read and the write
(e.g. payment landed) is simply not matched. Success is the row count.
"""
import logging
from datetime import datetime, timedelta
from typing import Sequence

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Order
from domain.enums import (
    CANCELLABLE_ORDER_STATUSES,
    OrderStatus,
    TransactionStatus,
    statuses_that_can_advance_to,
)
from domain.errors import NotFoundError

logger = logging.getLogger(__name__)


# ── Predicates ──────────────────────────────────────────────────────


def _awaiting_cancellation(cutoff: datetime):
    return and_(
        Order.order_status.in_(CANCELLABLE_ORDER_STATUSES),
        Order.transaction_status == TransactionStatus.PENDING.value,
        Order.created_at <= cutoff,
    )


def _pending_payment():
    return and_(
        Order.transaction_status == TransactionStatus.PENDING.value,
        Order.order_status != OrderStatus.CANCELLED.value,
    )


def _ready_for_completion(now: datetime):
    return and_(
        Order.order_status == OrderStatus.DELIVERED.value,
        Order.is_disputed == False,  # noqa: E712
        Order.dispute_window_expires_at.is_not(None),
        Order.dispute_window_expires_at <= now,
        Order.completed_at.is_(None),
    )


# ── Reads ───────────────────────────────────────────────────────────


async def get_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(select(Order).where(Order.order_id == order_id))
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order", str(order_id))
    return order


async def find_orders_awaiting_cancellation(db: AsyncSession, cutoff: datetime) -> list[Order]:
    result = await db.execute(
        select(Order).where(_awaiting_cancellation(cutoff)).order_by(Order.created_at)
    )
    return list(result.scalars().all())


async def find_pending_payment_orders(db: AsyncSession) -> list[Order]:
    result = await db.execute(
        select(Order).where(_pending_payment()).order_by(Order.created_at)
    )
    return list(result.scalars().all())


async def find_orders_ready_for_completion(db: AsyncSession, now: datetime) -> list[Order]:
    result = await db.execute(
        select(Order).where(_ready_for_completion(now)).order_by(Order.dispute_window_expires_at)
    )
    return list(result.scalars().all())


# ── Conditional writes (scheduler) ──────────────────────────────────


async def cancel_unpaid_order(db: AsyncSession, order_id: int, cutoff: datetime, now: datetime) -> bool:
    """
    pending/packaging + unpaid + older than cutoff -> cancelled/failed.

    Returns False when the order no longer matches (paid, shipped, already
    cancelled by another worker).
    """
    result = await db.execute(
        update(Order)
        .where(Order.order_id == order_id, _awaiting_cancellation(cutoff))
        .values(
            order_status=OrderStatus.CANCELLED.value,
            transaction_status=TransactionStatus.FAILED.value,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def complete_orders(db: AsyncSession, order_ids: Sequence[int], now: datetime) -> list[Order]:
    """
    Bulk delivered -> completed for `order_ids` that still qualify.

    Returns exactly the orders this call transitioned: rows completed by a
    concurrent run, or disputed in the meantime, are excluded.
    """
    if not order_ids:
        return []

    result = await db.execute(
        update(Order)
        .where(Order.order_id.in_(list(order_ids)), _ready_for_completion(now))
        .values(
            order_status=OrderStatus.COMPLETED.value,
            completed_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    if result.rowcount == 0:
        return []

    transitioned = await db.execute(
        select(Order)
        .where(
            Order.order_id.in_(list(order_ids)),
            Order.order_status == OrderStatus.COMPLETED.value,
            Order.completed_at == now,
        )
        .execution_options(populate_existing=True)
    )
    return list(transitioned.scalars().all())


# ── Conditional writes (payment / fulfilment callbacks) ─────────────


async def record_payment_success(db: AsyncSession, order_id: int, now: datetime) -> bool:
    """pending -> success, only while the order has not been cancelled."""
    result = await db.execute(
        update(Order)
        .where(Order.order_id == order_id, _pending_payment())
        .values(transaction_status=TransactionStatus.SUCCESS.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def advance_order_status(db: AsyncSession, order_id: int, target: str, now: datetime) -> bool:
    """Move an order forward to `target`; never regresses."""
    result = await db.execute(
        update(Order)
        .where(
            Order.order_id == order_id,
            Order.order_status.in_(statuses_that_can_advance_to(target)),
        )
        .values(order_status=target, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def mark_delivered(db: AsyncSession, order_id: int, now: datetime, window: timedelta) -> bool:
    """
    Paid order -> delivered, opening the dispute window.

    The order must be paid and at a status from which delivered is a forward
    move.
    """
    result = await db.execute(
        update(Order)
        .where(
            Order.order_id == order_id,
            Order.transaction_status == TransactionStatus.SUCCESS.value,
            Order.order_status.in_(statuses_that_can_advance_to(OrderStatus.DELIVERED.value)),
        )
        .values(
            order_status=OrderStatus.DELIVERED.value,
            dispute_window_expires_at=now + window,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def open_dispute(db: AsyncSession, order_id: int, now: datetime) -> bool:
    """Flag a delivered order as disputed while its window is still open."""
    result = await db.execute(
        update(Order)
        .where(
            Order.order_id == order_id,
            Order.order_status == OrderStatus.DELIVERED.value,
            Order.is_disputed == False,  # noqa: E712
            Order.dispute_window_expires_at > now,
        )
        .values(is_disputed=True, has_been_disputed=True, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def resolve_dispute(db: AsyncSession, order_id: int, now: datetime) -> bool:
    """
    Clear an open dispute. The window is closed at `now`, so the next
    auto-complete pass settles the order.
    """
    result = await db.execute(
        update(Order)
        .where(
            Order.order_id == order_id,
            Order.order_status == OrderStatus.DELIVERED.value,
            Order.is_disputed == True,  # noqa: E712
        )
        .values(is_disputed=False, dispute_window_expires_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1
