"""
Order lifecycle jobs run by the scheduler.

    auto_cancel_unpaid_orders  — unpaid orders past the payment timeout -> cancelled
    remind_pending_payments    — periodic nudges while payment is pending
    auto_complete_orders       — delivered orders past the dispute window -> completed

Each job returns the number of orders it acted on. A failure on one order is
logged and rolled back; the remaining orders are still processed.
"""
import logging
from datetime import datetime, timedelta
from typing import NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from domain.constants import PAYMENT_TIMEOUT_REASON
from domain.enums import NotificationType, OrderStatus, RecipientRole
from domain.errors import DomainError
from services import notification_service, order_repository
from services.recipient_service import get_user, notify_all_admins
from utils.clock import minutes_between, utcnow
from utils.order_messages import get_order_status_message

logger = logging.getLogger(__name__)


class OrderRef(NamedTuple):
    """Plain copy of the fields a job needs; survives a session rollback."""
    order_id: int
    user_id: str
    created_at: datetime

    @classmethod
    def of(cls, order) -> "OrderRef":
        return cls(order.order_id, order.user_id, order.created_at)


# ════════════════════════════════════════════════════════════════════
# Auto-cancel
# ════════════════════════════════════════════════════════════════════


async def _notify_customer(db: AsyncSession, order: OrderRef, **notice) -> bool:
    """
    Send the customer notice for an order that has already transitioned.

    A failure is logged and reported as False so the admin notices still go out.
    """
    try:
        await notification_service.create_notification(
            db,
            recipient_role=RecipientRole.USER.value,
            user_id=order.user_id,
            type=NotificationType.ORDER.value,
            **notice,
        )
        return True
    except DomainError as e:
        logger.error(f"Order #{order.order_id}: customer notice {notice.get('title')!r} failed: {e.message}")
        return False


async def _notify_cancellation(db: AsyncSession, order: OrderRef) -> None:
    user = await get_user(db, order.user_id)
    if user is None:
        logger.warning(f"Order #{order.order_id}: user {order.user_id} not found, skipping customer notice")
    else:
        await _notify_customer(
            db,
            order,
            title="Order Cancelled",
            message=get_order_status_message(order.order_id, OrderStatus.CANCELLED.value),
            metadata={"orderId": order.order_id, "reason": PAYMENT_TIMEOUT_REASON},
            email=user.email,
        )

    await notify_all_admins(
        db,
        title="Order Auto-Cancelled",
        message=f"Order #{order.order_id} was automatically cancelled (payment timeout).",
        type=NotificationType.ORDER.value,
        metadata={"orderId": order.order_id, "userId": order.user_id},
    )


async def auto_cancel_unpaid_orders(db: AsyncSession, now: datetime | None = None) -> int:
    """Cancel orders still unpaid `payment_timeout_minutes` after creation."""
    now = now or utcnow()
    cutoff = now - timedelta(minutes=settings.payment_timeout_minutes)

    orders = await order_repository.find_orders_awaiting_cancellation(db, cutoff)
    if not orders:
        return 0

    cancelled = 0
    for order in [OrderRef.of(o) for o in orders]:
        try:
            swapped = await order_repository.cancel_unpaid_order(db, order.order_id, cutoff, now)
            if not swapped:
                logger.info(f"Order #{order.order_id} changed since scan, not cancelled")
                continue
            cancelled += 1
            logger.info(f"Order #{order.order_id} auto-cancelled (unpaid since {order.created_at})")
            await _notify_cancellation(db, order)
        except Exception as e:
            logger.error(f"Auto-cancel failed for order #{order.order_id}: {e}", exc_info=True)
            await db.rollback()

    logger.info(f"Auto-cancel: {cancelled}/{len(orders)} order(s) cancelled")
    return cancelled


# ════════════════════════════════════════════════════════════════════
# Payment reminders
# ════════════════════════════════════════════════════════════════════


def should_send_reminder(
    created_at: datetime,
    now: datetime,
    timeout_minutes: int | None = None,
    period_minutes: int | None = None,
    tolerance_minutes: int | None = None,
) -> bool:
    """
    A reminder is due when the order is inside the payment window and the
    elapsed time sits within `tolerance` minutes after a multiple of `period`.

    Stateless: with a job period equal to the reminder period, each window
    is normally hit by exactly one run.
    """
    timeout = settings.payment_timeout_minutes if timeout_minutes is None else timeout_minutes
    period = settings.reminder_period_minutes if period_minutes is None else period_minutes
    tolerance = settings.reminder_tolerance_minutes if tolerance_minutes is None else tolerance_minutes

    elapsed = minutes_between(created_at, now)
    if elapsed < 0 or elapsed > timeout:
        return False
    return elapsed % period <= tolerance


async def remind_pending_payments(db: AsyncSession, now: datetime | None = None) -> int:
    """Send payment reminders for unpaid, uncancelled orders that are due one."""
    now = now or utcnow()
    orders = await order_repository.find_pending_payment_orders(db)

    reminded = 0
    for order in [OrderRef.of(o) for o in orders]:
        if not should_send_reminder(order.created_at, now):
            continue
        try:
            user = await get_user(db, order.user_id)
            if user is None:
                logger.warning(f"Order #{order.order_id}: user {order.user_id} not found, no reminder sent")
                continue
            await notification_service.create_notification(
                db,
                recipient_role=RecipientRole.USER.value,
                user_id=order.user_id,
                title="Payment Reminder",
                message=(
                    f"Reminder: Please complete payment for order #{order.order_id}. "
                    f"Orders are cancelled after {settings.payment_timeout_minutes // 60} hours."
                ),
                type=NotificationType.PAYMENT.value,
                metadata={"orderId": order.order_id},
                email=user.email,
            )
            reminded += 1
        except Exception as e:
            logger.error(f"Payment reminder failed for order #{order.order_id}: {e}", exc_info=True)
            await db.rollback()

    if reminded:
        logger.info(f"Payment reminders sent: {reminded}")
    return reminded


# ════════════════════════════════════════════════════════════════════
# Auto-complete
# ════════════════════════════════════════════════════════════════════


async def _notify_completion(db: AsyncSession, order: OrderRef) -> None:
    user = await get_user(db, order.user_id)
    await _notify_customer(
        db,
        order,
        title="Order Completed",
        message=get_order_status_message(order.order_id, OrderStatus.COMPLETED.value),
        metadata={"orderId": order.order_id},
        email=user.email if user else None,
    )

    await notify_all_admins(
        db,
        title="Order Auto-Completed",
        message=f"Order #{order.order_id} auto-completed",
        type=NotificationType.ORDER.value,
        metadata={"orderId": order.order_id, "userId": order.user_id},
    )


async def auto_complete_orders(db: AsyncSession, now: datetime | None = None) -> int:
    """Complete delivered, undisputed orders whose dispute window has closed."""
    now = now or utcnow()
    candidates = await order_repository.find_orders_ready_for_completion(db, now)
    if not candidates:
        return 0

    completed = await order_repository.complete_orders(db, [o.order_id for o in candidates], now)
    if len(completed) < len(candidates):
        logger.info(
            f"Auto-complete: {len(candidates) - len(completed)} order(s) changed since scan, skipped"
        )

    for order in [OrderRef.of(o) for o in completed]:
        try:
            await _notify_completion(db, order)
        except Exception as e:
            logger.error(f"Completion notice failed for order #{order.order_id}: {e}", exc_info=True)
            await db.rollback()

    logger.info(f"Auto-complete: {len(completed)} order(s) completed")
    return len(completed)
