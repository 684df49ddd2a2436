"""
Consultation booking expiry job.

A booking holds its time slot while payment is pending. Once the hold lapses
the booking is cancelled, the slot is released, and the customer is told.
"""
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from domain.constants import BOOKING_PAYMENT_TIMEOUT_REASON
from domain.enums import NotificationType, RecipientRole
from services import booking_repository, notification_service
from services.recipient_service import get_user
from utils.clock import utcnow

logger = logging.getLogger(__name__)


async def expire_pending_bookings(db: AsyncSession, now: datetime | None = None) -> int:
    now = now or utcnow()
    bookings = await booking_repository.find_expired_pending_bookings(db, now)
    if not bookings:
        return 0

    expired = 0
    # plain values: a rollback below expires every loaded instance
    held = [(b.id, b.user_id, b.time_slot_id) for b in bookings]
    for booking_id, user_id, time_slot_id in held:
        try:
            if not await booking_repository.expire_booking(db, booking_id, now):
                logger.info(f"Booking {booking_id} changed since scan, not expired")
                continue
            expired += 1
            await booking_repository.release_time_slot(db, time_slot_id)
            logger.info(f"Booking {booking_id} expired, slot {time_slot_id} released")

            user = await get_user(db, user_id)
            await notification_service.create_notification(
                db,
                recipient_role=RecipientRole.USER.value,
                user_id=user_id,
                title="Booking Cancelled",
                message=(
                    f"Your consultation booking #{booking_id} was cancelled because "
                    f"payment was not completed in time."
                ),
                type=NotificationType.BOOKING.value,
                metadata={
                    "bookingId": booking_id,
                    "timeSlotId": time_slot_id,
                    "reason": BOOKING_PAYMENT_TIMEOUT_REASON,
                },
                email=user.email if user else None,
            )
        except Exception as e:
            logger.error(f"Booking expiry failed for booking {booking_id}: {e}", exc_info=True)
            await db.rollback()

    logger.info(f"Booking expiry: {expired}/{len(bookings)} booking(s) expired")
    return expired
