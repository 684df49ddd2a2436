"""
Outbound webhook dispatcher.

Every active subscription for an event gets one POST of the JSON payload.
Deliveries run concurrently; a timeout, non-2xx response or network error on
one subscription is logged with its URL and does not affect the others.
There is no retry and no automatic deactivation.
"""
import asyncio
import logging
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import WebhookSubscription
from domain.constants import WEBHOOK_EVENT_HEADER, WEBHOOK_SIGNATURE_HEADER

logger = logging.getLogger(__name__)


async def get_active_subscriptions(db: AsyncSession, event: str) -> list[WebhookSubscription]:
    result = await db.execute(
        select(WebhookSubscription).where(
            WebhookSubscription.event == event,
            WebhookSubscription.is_active == True,  # noqa: E712
        )
    )
    return list(result.scalars().all())


def build_headers(event: str, secret: str | None) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        WEBHOOK_EVENT_HEADER: event,
        # Shared token sent verbatim; not an HMAC over the body
        WEBHOOK_SIGNATURE_HEADER: secret or "",
    }


async def _deliver(
    client: httpx.AsyncClient,
    subscription: WebhookSubscription,
    event: str,
    payload: dict[str, Any],
) -> dict[str, Any]:
    outcome: dict[str, Any] = {"url": subscription.url, "ok": False, "status": None, "error": None}
    try:
        response = await client.post(
            subscription.url,
            json=payload,
            headers=build_headers(event, subscription.secret),
        )
        outcome["status"] = response.status_code
        response.raise_for_status()
        outcome["ok"] = True
    except httpx.TimeoutException:
        outcome["error"] = "timeout"
        logger.error(f"Webhook {event} to {subscription.url} timed out")
    except httpx.HTTPStatusError as e:
        outcome["error"] = f"status {e.response.status_code}"
        logger.error(f"Webhook {event} to {subscription.url} failed: HTTP {e.response.status_code}")
    except httpx.HTTPError as e:
        outcome["error"] = str(e) or type(e).__name__
        logger.error(f"Webhook {event} to {subscription.url} failed: {e}")
    return outcome


async def dispatch(db: AsyncSession, event: str, payload: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Deliver `payload` to every active subscription for `event`.

    Returns:
        One outcome dict per subscription: {url, ok, status, error}
    """
    subscriptions = await get_active_subscriptions(db, event)
    if not subscriptions:
        return []

    async with httpx.AsyncClient(timeout=settings.webhook_timeout_seconds) as client:
        outcomes = await asyncio.gather(
            *(_deliver(client, sub, event, payload) for sub in subscriptions)
        )

    delivered = sum(1 for o in outcomes if o["ok"])
    logger.info(f"Webhook {event}: {delivered}/{len(outcomes)} deliveries succeeded")
    return list(outcomes)
