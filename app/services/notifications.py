"""
Outbound e-mail through the Brevo transactional API.
"""

from __future__ import annotations

import html
import logging

import httpx

from app.core.config import settings
from app.core.exceptions import DependencyFailure

logger = logging.getLogger(__name__)

_TIMEOUT = httpx.Timeout(10.0)


def _otp_body(otp: str, minutes: int) -> str:
    app_name = html.escape(settings.APP_NAME)
    return (
        '<div style="font-family:Arial,sans-serif;line-height:1.6">'
        f'<h2 style="margin:0 0 8px 0">{app_name}</h2>'
        "<p>Use this one-time code to reset your password:</p>"
        '<div style="font-size:28px;font-weight:800;letter-spacing:4px">'
        f"{html.escape(otp)}</div>"
        f"<p>It is valid for <b>{minutes}</b> minutes.</p>"
        '<p style="color:#888;font-size:12px">'
        "If you did not ask for this, ignore this e-mail.</p>"
        "</div>"
    )


async def send_otp_email(
    to_email: str,
    otp: str,
    minutes: int,
    to_name: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> None:
    """Deliver a password-reset OTP.  Raises ``DependencyFailure`` on any failure."""
    if not settings.BREVO_API_KEY or not settings.BREVO_SENDER_EMAIL:
        raise DependencyFailure("OTP email sending failed: mail sender is not configured")

    recipient: dict[str, str] = {"email": to_email}
    if to_name and to_name.strip():
        recipient["name"] = to_name.strip()
    payload = {
        "sender": {
            "name": settings.BREVO_SENDER_NAME or settings.APP_NAME,
            "email": settings.BREVO_SENDER_EMAIL,
        },
        "to": [recipient],
        "subject": f"{settings.APP_NAME} - Password Reset OTP",
        "htmlContent": _otp_body(otp, minutes),
    }
    headers = {
        "accept": "application/json",
        "content-type": "application/json",
        "api-key": settings.BREVO_API_KEY,
    }

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=_TIMEOUT)
    try:
        response = await client.post(settings.BREVO_API_URL, json=payload, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        logger.error(
            "Brevo send failed: HTTP %d %s",
            exc.response.status_code,
            exc.response.text[:300],
        )
        raise DependencyFailure("OTP email sending failed") from exc
    except httpx.HTTPError as exc:
        logger.error("Brevo send failed: %s", exc)
        raise DependencyFailure("OTP email sending failed") from exc
    finally:
        if owns_client:
            await client.aclose()

    logger.info("Password reset OTP e-mailed to user address on file")
