"""
Mail Engine - transactional e-mail for account verification and recovery

Development mode logs the message (including the action link) instead of
sending it. Production mode posts to the Resend HTTP API.
"""
import asyncio
import re
import time
from typing import Any, Dict, Optional

import requests

from vu_assistant.config import Config
from vu_assistant.utils.logging_utils import anonymize_text, get_logger

logger = get_logger()

RESEND_API_URL = "https://api.resend.com/emails"
REQUEST_TIMEOUT = 15

_LINK_RE = re.compile(r'href="([^"]*verify[^"]*|[^"]*reset[^"]*)"')


def extract_action_link(html: str) -> Optional[str]:
    """Pull the verification/reset link out of a rendered template."""
    match = _LINK_RE.search(html or "")
    return match.group(1) if match else None


def _layout(title: str, heading: str, body: str, button_label: str, url: str, note: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="text-align: center; margin-bottom: 30px; background-color: #2563eb; color: white; padding: 20px; border-radius: 8px;">
    <h1 style="margin: 0;">{heading}</h1>
    <p style="margin: 5px 0 0 0; opacity: 0.9;">Your AI-powered university guide</p>
  </div>
  {body}
  <div style="text-align: center; margin: 30px 0;">
    <a href="{url}" style="background-color: #2563eb; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">{button_label}</a>
  </div>
  <p style="font-size: 14px; color: #64748b;">Or copy and paste this link into your browser:<br/>{url}</p>
  <p style="font-size: 14px; color: #64748b;">{note}</p>
</body>
</html>"""


def registration_verification_template(verification_url: str, user_name: str) -> str:
    body = (
        f"<h2>Hello {user_name}!</h2>"
        "<p>Welcome to Victoria University Assistant! Please verify your email address to get started.</p>"
    )
    return _layout(
        "Welcome to VU Assistant",
        "Welcome to VU Assistant!",
        body,
        "Verify Email Address",
        verification_url,
        "This link will expire in 24 hours. If you didn't create an account, you can ignore this email.",
    )


def password_reset_template(reset_url: str, user_name: str) -> str:
    body = (
        f"<h2>Hello {user_name},</h2>"
        "<p>We received a request to reset the password for your VU Assistant account.</p>"
    )
    return _layout(
        "Reset your password",
        "Password Reset",
        body,
        "Reset Password",
        reset_url,
        "This link will expire in 1 hour. If you didn't request a reset, your password will stay the same.",
    )


def email_change_template(verification_url: str, user_name: str, old_email: str, new_email: str) -> str:
    body = (
        f"<h2>Hello {user_name},</h2>"
        f"<p>You asked to change your VU Assistant email from <strong>{old_email}</strong> "
        f"to <strong>{new_email}</strong>. Confirm the new address below.</p>"
    )
    return _layout(
        "Verify your new email address",
        "Confirm Email Change",
        body,
        "Verify New Email",
        verification_url,
        "This link will expire in 24 hours. Your current email stays active until you confirm.",
    )


class MailEngine:
    def __init__(self, environment: Optional[str] = None):
        self.environment = environment or Config.EMAIL_ENVIRONMENT

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    async def send(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        logger.info(f"[Mail] Environment: {self.environment} | Subject: {subject}")
        if self.is_production:
            return await asyncio.to_thread(self._send_production, to, subject, html)
        return self._send_dev(to, subject, html)

    def _send_dev(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        link = extract_action_link(html)
        logger.info(f"[Mail][DEV] To: {anonymize_text(to)} | Subject: {subject} | Link: {link or '(none)'}")
        return {"success": True, "data": {"id": f"dev-email-{int(time.time() * 1000)}"}}

    def _send_production(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        if not Config.RESEND_API_KEY:
            logger.error("[Mail] RESEND_API_KEY is not configured")
            return {"success": False, "error": "RESEND_API_KEY is not configured"}
        try:
            response = requests.post(
                RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {Config.RESEND_API_KEY}",
                    "Content-Type": "application/json",
                },
                json={"from": Config.EMAIL_FROM, "to": [to], "subject": subject, "html": html},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            logger.info("[Mail] Email sent successfully")
            return {"success": True, "data": response.json()}
        except (requests.RequestException, ValueError) as e:
            # ValueError covers a 2xx reply whose body is not JSON
            logger.error(f"[Mail] Email sending failed: {e}")
            return {"success": False, "error": str(e)}


# Singleton
mail_engine = MailEngine()
