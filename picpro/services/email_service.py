"""Transactional email through the Resend HTTP API."""
import logging
from datetime import datetime, timezone
import httpx
from flask import current_app

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


class EmailError(RuntimeError):
    pass


def is_configured(config):
    return bool(config.get("RESEND_API_KEY"))


def _layout(app_name, body):
    year = datetime.now(timezone.utc).year
    return f"""<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"></head>
  <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="text-align: center; margin-bottom: 30px;">
      <h1 style="color: #c9a227; margin: 0;">{app_name}</h1>
    </div>
    {body}
    <p>Best,<br>The {app_name} Team</p>
    <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
    <p style="font-size: 12px; color: #666;">&copy; {year} {app_name}. All rights reserved.</p>
  </body>
</html>"""


class EmailService:
    def __init__(self, config):
        self.config = config
        self.app_name = config.get("APP_NAME", "PicPro AI")
        self.from_email = config.get("FROM_EMAIL", "hello@picpro.ai")

    @property
    def is_configured(self):
        return is_configured(self.config)

    def _send(self, to, subject, html):
        """Send one email. Returns the provider message id, or None in demo mode."""
        if not self.is_configured:
            logger.info("Email not configured — would send %r to %s", subject, to)
            return None

        resp = httpx.post(
            RESEND_URL,
            json={
                "from": f"{self.app_name} <{self.from_email}>",
                "to": [to],
                "subject": subject,
                "html": html,
            },
            headers={"Authorization": f"Bearer {self.config['RESEND_API_KEY']}"},
            timeout=30,
        )
        if resp.status_code >= 400:
            logger.error("Resend API error %s: %s", resp.status_code, resp.text)
            raise EmailError(f"Resend API error {resp.status_code}")
        message_id = resp.json().get("id")
        logger.info("Email %r sent to %s (%s)", subject, to, message_id)
        return message_id

    def send_order_received(self, to, dashboard_url):
        body = f"""
    <h2>Thanks for your order!</h2>
    <p>We're training a custom model on your photos and will generate your headshots next.
    This usually takes 15-30 minutes.</p>
    <p>We'll email you again as soon as your headshots are ready. You can follow progress on
    <a href="{dashboard_url}">your dashboard</a>.</p>
"""
        return self._send(to, f"Welcome to {self.app_name}!", _layout(self.app_name, body))

    def send_headshots_ready(self, to, dashboard_url, headshot_count):
        body = f"""
    <h2>Your headshots are ready!</h2>
    <p>We've finished generating your <strong>{headshot_count} professional AI headshots</strong>.</p>
    <div style="text-align: center; margin: 30px 0;">
      <a href="{dashboard_url}" style="display: inline-block; background: #c9a227; color: #000; text-decoration: none; padding: 15px 30px; border-radius: 8px; font-weight: bold;">
        View &amp; Download Your Headshots
      </a>
    </div>
    <p>Your headshots stay available for download from your dashboard.</p>
"""
        return self._send(
            to,
            f"Your {headshot_count} AI Headshots are Ready!",
            _layout(self.app_name, body),
        )

    def send_order_failed(self, to, dashboard_url):
        body = f"""
    <h2>There was a problem with your order</h2>
    <p>Something went wrong while creating your headshots. Our team has been notified.
    Please reply to this email or contact support and we'll make it right.</p>
    <p><a href="{dashboard_url}">View your order</a></p>
"""
        return self._send(
            to,
            f"{self.app_name}: an issue with your order",
            _layout(self.app_name, body),
        )


def dashboard_url(config, order_id):
    base = (config.get("APP_URL") or "").rstrip("/")
    return f"{base}/dashboard?orderId={order_id}"


def get_email():
    return EmailService(current_app.config)
