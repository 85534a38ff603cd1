"""
Notifications - Models.

Formatted messages and per-destination delivery outcomes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class DeliveryMethod(Enum):
    """Telegram API method used for a delivery."""

    TEXT = "sendMessage"
    PHOTO = "sendPhoto"


@dataclass(frozen=True)
class NotificationMessage:
    """
    Formatted notification content.

    When `image_url` is set the body is sent as the photo caption,
    otherwise as a plain HTML message.
    """

    body: str
    image_url: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of delivering one message to one destination."""

    chat_id: str
    success: bool
    method: Optional[DeliveryMethod] = None
    attempts: int = 0
    message_id: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chat_id": self.chat_id,
            "success": self.success,
            "method": self.method.value if self.method else None,
            "attempts": self.attempts,
            "message_id": self.message_id,
            "error": self.error,
        }


@dataclass
class DeliveryReport:
    """Aggregated outcomes of one fan-out."""

    outcomes: List[DeliveryOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> Tuple[str, ...]:
        return tuple(o.chat_id for o in self.outcomes if o.success)

    @property
    def failed(self) -> Tuple[str, ...]:
        return tuple(o.chat_id for o in self.outcomes if not o.success)

    @property
    def any_succeeded(self) -> bool:
        return any(o.success for o in self.outcomes)

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and not self.any_succeeded

    def outcome_for(self, chat_id: str) -> Optional[DeliveryOutcome]:
        for outcome in self.outcomes:
            if outcome.chat_id == chat_id:
                return outcome
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": list(self.succeeded),
            "failed": list(self.failed),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


__all__ = [
    "DeliveryMethod",
    "NotificationMessage",
    "DeliveryOutcome",
    "DeliveryReport",
]
