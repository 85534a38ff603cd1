"""
Notifications Package.

============================================================
PURPOSE
============================================================
Formatting and delivery of token event notifications.

- formatter: pure record -> HTML message transformation
- telegram:  fan-out delivery to every configured chat

============================================================
"""

from .models import (
    DeliveryMethod,
    NotificationMessage,
    DeliveryOutcome,
    DeliveryReport,
)
from .formatter import TokenNotificationFormatter, STATUS_LABELS, LINK_LABELS
from .telegram import TelegramNotifier


__all__ = [
    "DeliveryMethod",
    "NotificationMessage",
    "DeliveryOutcome",
    "DeliveryReport",
    "TokenNotificationFormatter",
    "STATUS_LABELS",
    "LINK_LABELS",
    "TelegramNotifier",
]
