"""
Mobile push channel.

No push provider is wired up yet; the channel only records that a push would
have been sent so the fanout contract (four channels, each attempted) holds.
"""
import logging

logger = logging.getLogger(__name__)


async def send_push_notification(user_id: str | None, title: str, message: str) -> bool:
    target = user_id or "broadcast"
    logger.info(f"Push notification (not delivered, no provider) -> {target}: {title}")
    return True
