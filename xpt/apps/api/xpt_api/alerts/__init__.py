from .dispatcher import AlertDispatcher
from .email import AlertEmailSender, AlertMessage, LoggingAlertSender, build_alert_sender, render_alert

__all__ = [
    "AlertDispatcher",
    "AlertEmailSender",
    "AlertMessage",
    "LoggingAlertSender",
    "build_alert_sender",
    "render_alert",
]
