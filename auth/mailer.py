"""
Magic-link delivery through the Resend HTTP API.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from config.settings import config
from utils.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


async def send_magic_link(
    email: str,
    link: str,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """
    Email ``link`` to ``email``.

    Without ``RESEND_API_KEY`` nothing is sent and the link is only logged
    at DEBUG, which is what local development wants.
    """
    if not config.resend_api_key:
        logger.warning("RESEND_API_KEY not set; magic link for %s not emailed", email)
        logger.debug("Magic link for %s: %s", email, link)
        return

    minutes = config.magic_link_expiry_seconds // 60
    payload = {
        "from": config.resend_from_email,
        "to": [email],
        "subject": "Your Magic Login Link",
        "html": (
            f'<p>Click <a href="{link}">here</a> to log in. '
            f"This link expires in {minutes} minutes.</p>"
        ),
    }
    try:
        async with httpx.AsyncClient(transport=transport, timeout=10.0) as client:
            resp = await client.post(
                config.resend_api_url,
                json=payload,
                headers={"Authorization": f"Bearer {config.resend_api_key}"},
            )
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("Magic link delivery to %s failed: %s", email, exc)
        raise EmailDeliveryError()
