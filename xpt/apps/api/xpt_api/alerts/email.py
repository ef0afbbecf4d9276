"""Rate limit alert rendering and email delivery.

Delivery goes through the Resend HTTP API:
- POST https://api.resend.com/emails
- Authorization: Bearer <RESEND_API_KEY>

Environment Variables:
- RESEND_API_KEY: enables email delivery (LoggingAlertSender otherwise)
- ALERT_FROM_ADDRESS: sender address
"""

import html
import logging
from datetime import datetime
from typing import Optional, Protocol

import httpx

from xpt_api.config.env import get_alert_from_address, get_resend_api_key
from xpt_api.errors import NotificationError
from xpt_api.ratelimit.models import RateLimitAlert

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class AlertMessage:
    """Rendered alert email."""

    def __init__(self, subject: str, text: str, html: str):
        self.subject = subject
        self.text = text
        self.html = html


class AlertSender(Protocol):
    def send(self, message: AlertMessage, recipients: list[str]) -> None: ...


def window_label(limit_hit: str) -> str:
    """"perDay" -> "day"."""
    return limit_hit.replace("per", "", 1).lower()


def render_alert(alert: RateLimitAlert, tenant_name: str, timestamp: datetime) -> AlertMessage:
    label = window_label(alert.limit_hit)
    usage = f"{alert.current} of {alert.limit} {label} {alert.action_type}s used"
    sent_at = timestamp.isoformat()

    subject = f"Rate Limit Alert: {alert.action_type} - {alert.limit_hit} limit reached"

    text = "\n".join(
        [
            "Rate Limit Alert",
            "",
            f"Tenant: {tenant_name}",
            f"Action: {alert.action_type}",
            f"Window: {label}",
            f"Usage: {usage}",
            f"Time: {sent_at}",
            "",
            "If this is legitimate usage, the limit can be raised for this tenant.",
        ]
    )

    rows = [
        ("Tenant", tenant_name),
        ("Action", alert.action_type),
        ("Window Hit", label),
        ("Usage", usage),
        ("Time", sent_at),
    ]
    cells = "\n".join(
        f'<tr><td style="padding: 8px 12px; font-weight: 600;">{html.escape(name)}</td>'
        f'<td style="padding: 8px 12px;">{html.escape(value)}</td></tr>'
        for name, value in rows
    )
    body = (
        '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 40px 20px;">'
        '<h1 style="color: #E76F51; font-size: 24px;">Rate Limit Alert</h1>'
        f'<table style="width: 100%; border-collapse: collapse;">{cells}</table>'
        '<p style="font-size: 14px; color: #666;">'
        "If this is legitimate usage, the limit can be raised for this tenant.</p>"
        "</div>"
    )

    return AlertMessage(subject=subject, text=text, html=body)


class AlertEmailSender:
    """Sends alert emails via Resend.

    Uses a synchronous httpx client because delivery already runs on the
    dispatcher's worker threads.
    """

    def __init__(
        self,
        api_key: str,
        from_address: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        if not api_key:
            raise ValueError("RESEND_API_KEY is required for AlertEmailSender")
        self.api_key = api_key
        self.from_address = from_address or get_alert_from_address()
        self.client = client or httpx.Client(timeout=timeout)

    def send(self, message: AlertMessage, recipients: list[str]) -> None:
        """Deliver one message to all recipients.

        Raises:
            NotificationError: transport failure or non-2xx response
        """
        payload = {
            "from": self.from_address,
            "to": recipients,
            "subject": message.subject,
            "text": message.text,
            "html": message.html,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self.client.post(RESEND_API_URL, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationError(
                f"Resend rejected alert email: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise NotificationError(f"Resend request failed: {type(e).__name__}") from e

    def close(self) -> None:
        self.client.close()


class LoggingAlertSender:
    """Fallback when no email provider is configured: the alert is logged."""

    def send(self, message: AlertMessage, recipients: list[str]) -> None:
        logger.warning(
            "alert.email.not_configured",
            extra={"subject": message.subject, "recipient_count": len(recipients)},
        )

    def close(self) -> None:
        pass


def build_alert_sender():
    """Pick the delivery backend from the environment."""
    api_key = get_resend_api_key()
    if api_key:
        return AlertEmailSender(api_key=api_key)
    logger.info("alert.email.fallback_logging", extra={"reason": "RESEND_API_KEY not set"})
    return LoggingAlertSender()
