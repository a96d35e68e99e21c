# =============================================================================
# lib/email_templates.py - Transactional Email Templates
# =============================================================================
# Each builder returns a RenderedEmail(subject, html). Names come from user
# input and are HTML-escaped before they reach the markup.
#
# Templates:
# - welcome: sent once after signup
# - low_credits: sent when a charge leaves the balance under 100
# - day2 / day5 / day7: onboarding follow-ups (see core/services/followup_service.py)
# =============================================================================

from html import escape
from typing import NamedTuple

from app.config import settings


class RenderedEmail(NamedTuple):
    subject: str
    html: str


FOLLOWUP_STAGES = ("day2", "day5", "day7")


def _greeting_name(name: str | None) -> str:
    return escape(name.strip()) if name and name.strip() else "there"


def _button(href: str, label: str, color: str = "#111") -> str:
    return (
        f'<a href="{href}" style="display:inline-block;padding:14px 30px;background:{color};'
        f'color:#fff;border-radius:10px;text-decoration:none;font-size:15px;font-weight:600;">'
        f"{label}</a>"
    )


def _layout(name: str | None, heading: str, body: str, cta: str, footer: str) -> str:
    return f"""<!DOCTYPE html><html><head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="margin:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Arial,sans-serif;color:#111;">
  <div style="max-width:520px;margin:48px auto;padding:40px;">
    <p style="margin:0 0 8px;font-size:14px;color:#666;">Hi {_greeting_name(name)},</p>
    <h1 style="margin:0 0 16px;font-size:24px;font-weight:600;">{heading}</h1>
    <div style="margin:0 0 24px;font-size:16px;color:#444;line-height:1.6;">{body}</div>
    {cta}
    <p style="margin-top:32px;font-size:13px;color:#888;">{footer}</p>
  </div>
</body></html>"""


def _url(path: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}{path}"


def welcome(name: str | None) -> RenderedEmail:
    body = (
        "<p>Thanks for signing up. Here is how to get started:</p>"
        "<ul>"
        "<li>Extract data from your first invoice or receipt</li>"
        "<li>Ask questions about your spreadsheets</li>"
        "<li>Automate repeat work with workflows</li>"
        "</ul>"
    )
    return RenderedEmail(
        subject="Welcome to Veriflo!",
        html=_layout(
            name,
            "Welcome to Veriflo!",
            body,
            _button(_url("/dashboard"), "Go to Dashboard", color="#667eea"),
            "If you have any questions, reply to this email.",
        ),
    )


def low_credits(name: str | None, credits: int) -> RenderedEmail:
    body = (
        f"<p>Your account is running low on credits. You have <strong>{int(credits)} credits</strong> left.</p>"
        "<p>Upgrade your plan or buy a credit pack to keep going.</p>"
    )
    return RenderedEmail(
        subject="Low Credits Warning - Veriflo",
        html=_layout(
            name,
            "Low Credits Warning",
            body,
            _button(_url("/pricing"), "View Pricing", color="#f59e0b"),
            "If you have any questions, reply to this email.",
        ),
    )


def followup(stage: str, name: str | None, invoices_processed: int = 0) -> RenderedEmail:
    """
    Onboarding follow-up for `stage` (day2, day5 or day7).

    Raises:
        ValueError: Unknown stage
    """
    extract_url = _url("/extract/new")
    ignore_footer = "If you didn't create a Veriflo account, you can ignore this email."

    if stage == "day2":
        return RenderedEmail(
            subject="You haven't extracted yet - try Veriflo in 2 minutes",
            html=_layout(
                name,
                "You haven't extracted yet",
                "Upload a PDF invoice and let AI extract the data in seconds. No setup required.",
                _button(extract_url, "Extract your first invoice &rarr;"),
                ignore_footer,
            ),
        )

    if stage == "day5":
        return RenderedEmail(
            subject="Here's a quick way to try Veriflo extraction",
            html=_layout(
                name,
                "Still waiting to try extraction?",
                "One click: upload a sample invoice and see structured data. Takes under 2 minutes.",
                _button(extract_url, "Try extraction now &rarr;"),
                ignore_footer,
            ),
        )

    if stage == "day7":
        if invoices_processed > 0:
            body = "You've tried extraction. Need more documents or credits? Upgrade for 150 docs/month and more."
        else:
            body = "You're on the free plan with 10 docs and 100 credits per month. Ready for more? Check our plans."
        return RenderedEmail(
            subject="Your first week with Veriflo",
            html=_layout(
                name,
                "Your first week with Veriflo",
                body,
                _button(_url("/pricing"), "View pricing &rarr;"),
                "Questions? Reply to this email.",
            ),
        )

    raise ValueError(f"Unknown follow-up stage: {stage}")
