"""
MJML Email Templates
All email templates using MJML for responsive, cross-client compatibility
"""

from html import escape
from typing import Optional

from .config import APP_NAME, FRONTEND_URL

# Calm teal/slate palette used across the web app
THEME = {
    "primary": "#0f766e",
    "primary_dark": "#115e59",
    "primary_light": "#ccfbf1",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    footer_notice: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    notice = ""
    if footer_notice:
        notice = f"""
        <mj-text align="center" font-size="12px" color="#94a3b8" padding="12px 0 0 0">
          {footer_notice}
        </mj-text>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <!-- Header -->
        <mj-section background-color="#ffffff" padding="32px 40px 0 40px">
          <mj-column>
            <mj-text font-size="20px" font-weight="700" color="{THEME['primary']}" padding="0 0 24px 0">
              {APP_NAME}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 32px 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 32px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              This message may relate to confidential health information. If you received it in error, please delete it.
            </mj-text>
            {notice}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def password_reset_template(reset_link: str, portal: bool = False) -> str:
    """Password reset MJML template (staff or client portal)"""
    audience = "client portal" if portal else APP_NAME
    content = f"""
    <mj-text>
      We received a request to reset your {audience} password.
    </mj-text>

    <mj-text>
      Click the button below to create a new password. This link will expire in 1 hour.
    </mj-text>

    <mj-text font-size="13px" color="{THEME['text_muted']}">
      If you didn't request this, you can safely ignore this email. Your password won't be changed.
    </mj-text>
    """

    return get_base_template(
        title="Reset Your Password",
        preview_text=f"Reset your {audience} password",
        content_sections=content,
        cta_url=reset_link,
        cta_label="Reset Password",
    )


def portal_invitation_template(client_name: str, practice_name: str, activation_link: str) -> str:
    """Client portal invitation MJML template"""
    content = f"""
    <mj-text>
      Hi {escape(client_name)},
    </mj-text>

    <mj-text>
      {escape(practice_name)} has invited you to their secure client portal. Once activated you can:
    </mj-text>

    <mj-text padding="0 0 0 20px">
      • See and book upcoming appointments<br/>
      • Complete forms and questionnaires<br/>
      • Share documents with your care team
    </mj-text>

    <mj-text>
      Choose a password to activate your account. This invitation expires in 7 days.
    </mj-text>
    """

    return get_base_template(
        title="Your Client Portal Is Ready",
        preview_text=f"{practice_name} invited you to the client portal",
        content_sections=content,
        cta_url=activation_link,
        cta_label="Activate Portal",
        footer_notice=f"You're receiving this because {escape(practice_name)} added you as a client.",
    )


def notification_email_template(title: str, message: str, action_url: Optional[str] = None) -> str:
    """In-app notification mirrored to email"""
    content = f"""
    <mj-text>
      {escape(message)}
    </mj-text>
    """

    return get_base_template(
        title=escape(title),
        preview_text=escape(title),
        content_sections=content,
        cta_url=f"{FRONTEND_URL}{action_url}" if action_url else None,
        cta_label=f"Open {APP_NAME}" if action_url else None,
        footer_notice="You can turn off these emails in your notification preferences.",
    )
