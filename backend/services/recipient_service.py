"""
Recipient lookups for the lifecycle jobs: customer email and the admin fanout.
"""
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Admin, User
from domain.enums import RecipientRole
from domain.errors import DomainError
from services import notification_service

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).where(User.user_id == user_id))
    return result.scalar_one_or_none()


async def get_active_admins(db: AsyncSession) -> list[Admin]:
    result = await db.execute(
        select(Admin).where(Admin.is_active == True).order_by(Admin.id)  # noqa: E712
    )
    return list(result.scalars().all())


async def notify_all_admins(
    db: AsyncSession,
    *,
    title: str,
    message: str,
    type: str,
    metadata: dict[str, Any] | None = None,
) -> int:
    """
    Send one targeted notification per active admin.

    A failure for one admin is logged and does not stop the others.
    Returns the number of admins notified.
    """
    # plain values: a failed notification rolls the session back and expires instances
    recipients = [(a.admin_id, a.email) for a in await get_active_admins(db)]
    notified = 0
    for admin_id, admin_email in recipients:
        try:
            await notification_service.create_notification(
                db,
                recipient_role=RecipientRole.ADMIN.value,
                user_id=admin_id,
                title=title,
                message=message,
                type=type,
                metadata=metadata,
                email=admin_email,
            )
            notified += 1
        except DomainError as e:
            logger.error(f"Failed to notify admin {admin_id} ('{title}'): {e.message}")
    return notified
