"""
Consultation booking repository — expiry reads and conditional writes.
"""
import logging
from datetime import datetime

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import ConsultationBooking, ConsultationTimeSlot
from domain.enums import BookingStatus, BookingTransactionStatus

logger = logging.getLogger(__name__)


def _hold_expired(now: datetime):
    return and_(
        ConsultationBooking.status == BookingStatus.PENDING.value,
        ConsultationBooking.transaction_status == BookingTransactionStatus.PENDING.value,
        ConsultationBooking.payment_expires_at.is_not(None),
        ConsultationBooking.payment_expires_at < now,
    )


async def find_expired_pending_bookings(db: AsyncSession, now: datetime) -> list[ConsultationBooking]:
    result = await db.execute(
        select(ConsultationBooking)
        .where(_hold_expired(now))
        .order_by(ConsultationBooking.payment_expires_at)
    )
    return list(result.scalars().all())


async def expire_booking(db: AsyncSession, booking_id: int, now: datetime) -> bool:
    """pending/pending with a lapsed hold -> cancelled/failed."""
    result = await db.execute(
        update(ConsultationBooking)
        .where(ConsultationBooking.id == booking_id, _hold_expired(now))
        .values(
            status=BookingStatus.CANCELLED.value,
            transaction_status=BookingTransactionStatus.FAILED.value,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def release_time_slot(db: AsyncSession, time_slot_id: int) -> bool:
    result = await db.execute(
        update(ConsultationTimeSlot)
        .where(ConsultationTimeSlot.time_slot_id == time_slot_id)
        .values(is_available=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount == 0:
        logger.warning(f"Time slot {time_slot_id} not found, nothing to release")
        return False
    return True


async def confirm_booking_payment(db: AsyncSession, booking_id: int, now: datetime) -> bool:
    """Payment callback: pending -> confirmed/successful while the booking is still held."""
    result = await db.execute(
        update(ConsultationBooking)
        .where(
            ConsultationBooking.id == booking_id,
            ConsultationBooking.status == BookingStatus.PENDING.value,
            ConsultationBooking.transaction_status == BookingTransactionStatus.PENDING.value,
        )
        .values(
            status=BookingStatus.CONFIRMED.value,
            transaction_status=BookingTransactionStatus.SUCCESSFUL.value,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1
