# app/email_service.py
import logging
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Optional

import requests

from app.config import settings
from app.email_templates import render_payout_completed_html, money

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


def _send_via_resend(to_email: str, subject: str, text_body: str, html_body: Optional[str]) -> None:
    if not settings.resend_api_key or not settings.from_email:
        raise RuntimeError("RESEND_API_KEY / FROM_EMAIL not configured.")

    payload: dict = {
        "from": f"{settings.from_name} <{settings.from_email}>",
        "to": [to_email],
        "subject": subject,
        "text": text_body,
    }
    if html_body:
        payload["html"] = html_body
    if settings.reply_to_email:
        payload["reply_to"] = settings.reply_to_email

    r = requests.post(
        RESEND_URL,
        headers={"Authorization": f"Bearer {settings.resend_api_key}"},
        json=payload,
        timeout=15,
    )
    if r.status_code >= 300:
        raise RuntimeError(f"Resend send failed: {r.status_code} {r.text}")


def _send_via_smtp(to_email: str, subject: str, text_body: str, html_body: Optional[str]) -> None:
    sender = settings.from_email or settings.smtp_user
    if not settings.smtp_host or not sender:
        raise RuntimeError("SMTP_HOST / FROM_EMAIL not configured.")

    msg = EmailMessage()
    msg["From"] = f"{settings.from_name} <{sender}>"
    msg["To"] = to_email
    msg["Subject"] = subject
    if settings.reply_to_email:
        msg["Reply-To"] = settings.reply_to_email
    msg.set_content(text_body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=20) as server:
        if settings.smtp_tls:
            server.starttls()
        if settings.smtp_user and settings.smtp_pass:
            server.login(settings.smtp_user, settings.smtp_pass)
        server.send_message(msg)


def _send_email(to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> bool:
    """
    Deliver one message through the configured provider.
    Returns False when e-mail is disabled (dev and tests); provider errors propagate.
    """
    if not settings.email_enabled:
        logger.debug("EMAIL: disabled, not sending %r to %s", subject, to_email)
        return False

    provider = settings.email_provider.strip().lower()
    if provider == "resend":
        _send_via_resend(to_email, subject, text_body, html_body)
    elif provider == "smtp":
        _send_via_smtp(to_email, subject, text_body, html_body)
    else:
        raise RuntimeError(f"Unknown EMAIL_PROVIDER: {settings.email_provider!r}")
    return True


# -------------------------------------------------
# PAYOUT COMPLETED (sent per vendor after finalize)
# -------------------------------------------------
def send_payout_completed_email(
    to_email: str,
    vendor_name: str,
    amount,
    batch_number: str,
    utr_number: str | None = None,
) -> bool:
    name = (vendor_name or "Vendor").strip()

    subject = f"Payout sent - {batch_number}"

    lines = [
        f"Hello {name},",
        "",
        "Your payout has been processed.",
        "",
        f"Batch: {batch_number}",
        f"Amount: {money(amount)}",
    ]
    if utr_number:
        lines.append(f"Transfer reference (UTR): {utr_number}")
    lines += [
        "",
        "The amount should appear in your bank account shortly.",
        "If you have any questions, simply reply to this email.",
        "",
        "Best regards,",
        "Marketplace Team",
    ]
    text_body = "\n".join(lines)

    html_body = render_payout_completed_html(
        vendor_name=escape(name),
        amount=amount,
        batch_number=escape(batch_number),
        utr_number=escape(utr_number) if utr_number else None,
    )

    return _send_email(to_email=to_email, subject=subject, text_body=text_body, html_body=html_body)
