"""
Notification fanout service — the single way notifications are created.

create_notification():
    1. Resolves the address and shapes the metadata for the type
       (ValidationError before anything is stored)
    2. Persists the record (NotificationPersistenceError if that fails;
       no channel is attempted for an unrecorded notification)
    3. Attempts every channel concurrently, each in its own failure boundary:
         - realtime push to the recipient rooms
         - email (only when an address is given)
         - mobile push placeholder
         - webhooks for "notification.created"
    4. Returns the persisted record. Channel failures are logged, never raised.

Also hosts the read side used by the notifications router.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Notification
from domain.constants import NOTIFICATION_CREATED_EVENT, REALTIME_NOTIFICATION_EVENT
from domain.enums import RecipientRole
from domain.errors import NotFoundError, NotificationPersistenceError
from domain.metadata import shape_metadata
from domain.recipients import Targeted, resolve_address, rooms_for
from services import email_service, push_service, webhook_service
from services.realtime_service import manager
from utils.clock import utcnow

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
# Serialization
# ════════════════════════════════════════════════════════════════════


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Full record as clients see it (realtime event data + API responses)."""
    return {
        "id": notification.id,
        "userId": notification.user_id,
        "recipientRole": notification.recipient_role,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "isRead": notification.is_read,
        "metadata": notification.meta or {},
        "createdAt": _iso(notification.created_at),
        "updatedAt": _iso(notification.updated_at),
    }


def webhook_payload(notification: Notification) -> dict[str, Any]:
    """Flat body POSTed to notification.created subscribers."""
    return {
        "notificationId": notification.id,
        "userId": notification.user_id,
        "recipientRole": notification.recipient_role,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "metadata": notification.meta or {},
        "createdAt": _iso(notification.created_at),
    }


# ════════════════════════════════════════════════════════════════════
# Fanout
# ════════════════════════════════════════════════════════════════════


async def _attempt(channel: str, notification_id: int, send: Callable[[], Awaitable[Any]]) -> bool:
    """Run one channel; log and swallow its failure."""
    try:
        result = await send()
    except Exception as e:
        logger.error(
            f"Notification {notification_id}: {channel} channel failed: {e}",
            exc_info=True,
        )
        return False

    if result is False:
        logger.warning(f"Notification {notification_id}: {channel} channel reported failure")
        return False
    return True


async def create_notification(
    db: AsyncSession,
    *,
    recipient_role: str,
    title: str,
    message: str,
    type: str,
    user_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    email: str | None = None,
) -> Notification:
    """
    Persist a notification and fan it out to every channel.

    Raises:
        ValidationError: bad address or metadata for the type
        NotificationPersistenceError: the record could not be stored
    """
    address = resolve_address(recipient_role, user_id)
    shaped = shape_metadata(type, metadata)

    now = utcnow()
    notification = Notification(
        user_id=address.user_id if isinstance(address, Targeted) else None,
        recipient_role=address.role.value,
        title=title,
        message=message,
        type=type,
        is_read=False,
        meta=shaped,
        created_at=now,
        updated_at=now,
    )

    try:
        db.add(notification)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to persist notification '{title}': {e}")
        raise NotificationPersistenceError(details={"title": title})

    # stored from here on; a reload error is not a persistence failure
    await db.refresh(notification)

    record = serialize_notification(notification)
    rooms = rooms_for(address)

    channels: list[tuple[str, Callable[[], Awaitable[Any]]]] = [
        ("realtime", lambda: manager.emit(rooms, REALTIME_NOTIFICATION_EVENT, record)),
        ("push", lambda: push_service.send_push_notification(notification.user_id, title, message)),
        (
            "webhook",
            lambda: webhook_service.dispatch(db, NOTIFICATION_CREATED_EVENT, webhook_payload(notification)),
        ),
    ]
    if email:
        channels.insert(1, ("email", lambda: email_service.send_notification_email(email, title, message)))

    results = await asyncio.gather(*(_attempt(name, notification.id, send) for name, send in channels))

    failed = [name for (name, _), ok in zip(channels, results) if not ok]
    if failed:
        logger.warning(f"Notification {notification.id} persisted; channels failed: {', '.join(failed)}")
    else:
        logger.info(f"Notification {notification.id} '{title}' delivered to {recipient_role} via all channels")

    return notification


# ════════════════════════════════════════════════════════════════════
# Read side
# ════════════════════════════════════════════════════════════════════


def _user_visibility(user_id: str):
    """A user sees their own notifications plus broadcasts to everyone."""
    return or_(
        Notification.user_id == user_id,
        Notification.recipient_role == RecipientRole.BOTH.value,
    )


def _admin_visibility():
    return Notification.recipient_role.in_(
        [RecipientRole.ADMIN.value, RecipientRole.BOTH.value]
    )


async def _page(db: AsyncSession, predicate, limit: int, offset: int) -> tuple[list[Notification], int]:
    total = (
        await db.execute(select(func.count()).select_from(Notification).where(predicate))
    ).scalar_one()
    result = await db.execute(
        select(Notification)
        .where(predicate)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def get_user_notifications(
    db: AsyncSession, user_id: str, limit: int = 50, offset: int = 0
) -> tuple[list[Notification], int]:
    return await _page(db, _user_visibility(user_id), limit, offset)


async def get_admin_notifications(
    db: AsyncSession, limit: int = 50, offset: int = 0
) -> tuple[list[Notification], int]:
    return await _page(db, _admin_visibility(), limit, offset)


async def get_notification(db: AsyncSession, notification_id: int) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError("Notification", str(notification_id))
    return notification


async def mark_as_read(db: AsyncSession, notification_id: int) -> Notification:
    notification = await get_notification(db, notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.updated_at = utcnow()
        await db.commit()
        await db.refresh(notification)
    return notification


async def mark_all_as_read(db: AsyncSession, user_id: str) -> int:
    """Flip every unread notification addressed to `user_id`. Returns the count."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


async def delete_notification(db: AsyncSession, notification_id: int) -> None:
    result = await db.execute(delete(Notification).where(Notification.id == notification_id))
    if result.rowcount == 0:
        raise NotFoundError("Notification", str(notification_id))
    await db.commit()


async def get_unread_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
    )
    return result.scalar_one()
