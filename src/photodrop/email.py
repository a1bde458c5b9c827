"""Magic-link email delivery through Resend.

Without an API key the link is logged instead of sent, which is what local
development relies on. In production a missing key is an error.
"""

import html
import logging
from typing import Optional

import resend

from photodrop.auth.config import get_auth_settings
from photodrop.settings import settings

logger = logging.getLogger(__name__)

EMAIL_STYLES = """
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }
  .container { max-width: 600px; margin: 0 auto; padding: 20px; }
  .button { display: inline-block; padding: 12px 24px; background-color: #c67d5a; color: white; text-decoration: none; border-radius: 6px; margin: 20px 0; }
  .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


class EmailDeliveryError(RuntimeError):
    """Raised when an email could not be handed to the provider."""


def _wrap_html(body: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<style>{EMAIL_STYLES}</style></head>"
        f"<body><div class=\"container\">{body}</div></body></html>"
    )


def send_email(*, to: str, subject: str, html_body: str, text_body: str) -> Optional[str]:
    """Send one email. Returns the provider message id, or None when only logged."""
    if not settings.email_resend_api_key:
        if settings.is_production:
            raise EmailDeliveryError("EMAIL_RESEND_API_KEY is not configured")
        logger.info("Email delivery disabled; would send %r to %s:\n%s", subject, to, text_body)
        return None

    resend.api_key = settings.email_resend_api_key
    params = {
        "from": settings.email_from,
        "to": [to],
        "subject": subject,
        "html": html_body,
        "text": text_body,
    }
    try:
        response = resend.Emails.send(params)
    except Exception as e:
        logger.error("Failed to send email %r to %s: %s", subject, to, e)
        raise EmailDeliveryError(str(e)) from e

    message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    logger.info("Sent email %r to %s (id=%s)", subject, to, message_id)
    return message_id


def send_invite_email(
    *,
    to: str,
    name: Optional[str],
    group_name: str,
    link: str,
) -> Optional[str]:
    ttl = get_auth_settings().magic_link_ttl_minutes
    greeting = f"Hi {name}!" if name else "Hi!"
    safe_greeting = html.escape(greeting)
    safe_group = html.escape(group_name)
    safe_link = html.escape(link)
    subject = f"You've been invited to join {group_name}!"

    html_body = _wrap_html(
        f"<p>{safe_greeting}</p>"
        f"<p>You've been invited to join <strong>{safe_group}</strong> on photodrop - a private photo sharing app.</p>"
        f"<p>Click the button below to accept your invite and get started. This link will expire in {ttl} minutes.</p>"
        f"<p><a href=\"{safe_link}\" class=\"button\">Join {safe_group}</a></p>"
        "<p>Or copy and paste this link into your browser:</p>"
        f"<p style=\"font-size: 12px; color: #6b7280; word-break: break-all;\">{safe_link}</p>"
        f"<div class=\"footer\"><p>This invite was sent to {html.escape(to)}. "
        "If you didn't expect this email, you can safely ignore it.</p></div>"
    )
    text_body = (
        f"{greeting}\n\n"
        f"You've been invited to join {group_name} on photodrop - a private photo sharing app.\n\n"
        f"Click the link below to accept your invite and get started (link expires in {ttl} minutes):\n"
        f"{link}\n\n"
        f"This invite was sent to {to}. If you didn't expect this email, you can safely ignore it."
    )
    return send_email(to=to, subject=subject, html_body=html_body, text_body=text_body)


def send_login_link_email(*, to: str, name: str, link: str) -> Optional[str]:
    ttl = get_auth_settings().magic_link_ttl_minutes
    safe_link = html.escape(link)
    subject = "Log in to photodrop"

    html_body = _wrap_html(
        f"<p>Hi {html.escape(name)}!</p>"
        f"<p>Click the button below to log in to photodrop. This link will expire in {ttl} minutes.</p>"
        f"<p><a href=\"{safe_link}\" class=\"button\">Log in to photodrop</a></p>"
        "<p>Or copy and paste this link into your browser:</p>"
        f"<p style=\"font-size: 12px; color: #6b7280; word-break: break-all;\">{safe_link}</p>"
        f"<div class=\"footer\"><p>This login link was sent to {html.escape(to)}. "
        "If you didn't request this, you can safely ignore it.</p></div>"
    )
    text_body = (
        f"Hi {name}!\n\n"
        f"Click the link below to log in to photodrop (link expires in {ttl} minutes):\n"
        f"{link}\n\n"
        f"This login link was sent to {to}. If you didn't request this, you can safely ignore it."
    )
    return send_email(to=to, subject=subject, html_body=html_body, text_body=text_body)
