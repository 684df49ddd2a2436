"""
Email channel — transactional email over the provider's HTTP API (Brevo).

send_email() never raises: every failure is logged and reported as False so
the caller can treat email as one isolated channel among several.
"""
import logging
import re

import httpx

from config import settings
from utils.template import render_template

logger = logging.getLogger(__name__)

NOTIFICATION_TEMPLATE = "notification_email.html"


def is_valid_email(email: str | None) -> bool:
    if not email:
        return False
    return re.match(r"[^@]+@[^@]+\.[^@]+", email) is not None


async def send_email(to: str, subject: str, html: str) -> bool:
    """
    Send one HTML email.

    Returns:
        True if the provider accepted the message, False otherwise.
    """
    if not is_valid_email(to):
        logger.warning(f"Skipping email, invalid address: {to}")
        return False

    if not settings.mail_api_key:
        logger.warning(f"Skipping email to {to}: MAIL_API_KEY not configured")
        return False

    payload = {
        "sender": {
            "email": settings.mail_from,
            "name": settings.store_name,
        },
        "to": [{"email": to}],
        "subject": subject,
        "htmlContent": html,
    }
    headers = {
        "accept": "application/json",
        "api-key": settings.mail_api_key,
        "content-type": "application/json",
    }

    try:
        async with httpx.AsyncClient(timeout=settings.mail_timeout_seconds) as client:
            response = await client.post(settings.mail_api_url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"Email request to provider failed for {to}: {e}")
        return False

    if response.status_code >= 400:
        logger.error(f"Email provider rejected message to {to}: {response.status_code} {response.text}")
        return False

    logger.info(f"Email sent to {to}: {subject}")
    return True


def render_notification_email(title: str, message: str) -> str:
    return render_template(
        NOTIFICATION_TEMPLATE,
        title=title,
        message=message,
        store_name=settings.store_name,
    )


async def send_notification_email(to: str, title: str, message: str) -> bool:
    """Send the standard notification email (subject = title)."""
    html = render_notification_email(title, message)
    return await send_email(to, title, html)
