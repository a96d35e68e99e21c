# =============================================================================
# lib/mailer.py - ZeptoMail Sender
# =============================================================================
# Sends transactional email through the ZeptoMail REST API.
#
# Email is best-effort: every function returns True/False and logs failures
# instead of raising. Without ZEPTOMAIL_API_KEY, sending is disabled and
# every call returns False.
#
# Usage:
#   from lib.mailer import send_welcome_email
#   send_welcome_email("ada@example.com", "Ada")
# =============================================================================

from __future__ import annotations

import logging

from app.config import settings
from lib import email_templates
from lib.http import HttpRequestError, fetch_with_retry

logger = logging.getLogger(__name__)


def email_enabled() -> bool:
    return bool(settings.ZEPTOMAIL_API_KEY)


def send_email(to: str, subject: str, html: str, to_name: str | None = None) -> bool:
    """
    Send one HTML email.

    Returns:
        True if ZeptoMail accepted the message
    """
    if not email_enabled():
        logger.warning(f"ZEPTOMAIL_API_KEY not set; skipping email '{subject}'")
        return False

    recipient = {"address": to}
    if to_name:
        recipient["name"] = to_name

    payload = {
        "from": {"address": settings.EMAIL_FROM_ADDRESS, "name": settings.EMAIL_FROM_NAME},
        "to": [{"email_address": recipient}],
        "subject": subject,
        "htmlbody": html,
    }
    headers = {
        "Authorization": f"Zoho-enczapikey {settings.ZEPTOMAIL_API_KEY}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }

    try:
        response = fetch_with_retry("POST", settings.ZEPTOMAIL_API_URL, json=payload, headers=headers)
    except HttpRequestError as e:
        logger.error(f"Email '{subject}' could not be sent: {e}")
        return False

    if response.status_code >= 400:
        logger.error(f"ZeptoMail rejected '{subject}': {response.status_code} {response.text[:200]}")
        return False

    logger.info(f"Sent email '{subject}'")
    return True


def send_welcome_email(email: str, name: str | None = None) -> bool:
    rendered = email_templates.welcome(name)
    return send_email(email, rendered.subject, rendered.html, to_name=name)


def send_low_credits_email(email: str, name: str | None, credits: int) -> bool:
    rendered = email_templates.low_credits(name, credits)
    return send_email(email, rendered.subject, rendered.html, to_name=name)


def send_followup_email(stage: str, email: str, name: str | None, invoices_processed: int = 0) -> bool:
    rendered = email_templates.followup(stage, name, invoices_processed)
    return send_email(email, rendered.subject, rendered.html, to_name=name)
