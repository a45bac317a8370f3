"""
Email Service using Resend
Provides email functionality using MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .email_templates import (
    notification_email_template,
    password_reset_template,
    portal_invitation_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(Exception):
    """Raised when no email provider is configured"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict with 'html' and 'errors' keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise RuntimeError(f"Failed to compile MJML template: {str(e)}") from e


def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Raises:
        EmailNotConfiguredError: RESEND_API_KEY is missing
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    html_content = compile_mjml_to_html(mjml_content)

    try:
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent via Resend to {len(recipients)} recipient(s)")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error: {e}")
        raise RuntimeError(f"Failed to send email: {str(e)}") from e


# ============================================
# Pre-built emails
# ============================================


def send_password_reset_email(to: str, token: str, portal: bool = False) -> dict:
    """Send a password reset link for staff or the client portal"""
    path = "/portal/reset-password" if portal else "/reset-password"
    reset_link = f"{FRONTEND_URL}{path}?token={token}"
    return send_email(
        to=to,
        subject="Reset Your Password",
        mjml_content=password_reset_template(reset_link, portal=portal),
    )


def send_portal_invitation_email(to: str, client_name: str, practice_name: str, activation_url: str) -> dict:
    """Invite a client to activate their portal account"""
    return send_email(
        to=to,
        subject=f"{practice_name} invited you to the client portal",
        mjml_content=portal_invitation_template(client_name, practice_name, activation_url),
    )


def send_notification_email(to: str, title: str, message: str, action_url: Optional[str] = None) -> dict:
    """Mirror an in-app notification to email"""
    return send_email(
        to=to,
        subject=title,
        mjml_content=notification_email_template(title, message, action_url),
    )
