"""
Telegram Notification Sink.

============================================================
PURPOSE
============================================================
Deliver formatted notifications to Telegram chats.

PRINCIPLES:
- Notification-only, NO control commands
- Every destination is independent: one failing chat never
  prevents or delays delivery to another
- Delivery never raises; outcomes are reported per chat
- A photo that cannot be sent degrades to a text message

============================================================
"""

import asyncio
import dataclasses
import html
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple

import aiohttp

from core.constants import (
    DEFAULT_TELEGRAM_MAX_ATTEMPTS,
    TELEGRAM_API_BASE,
    TELEGRAM_CAPTION_LIMIT,
    TELEGRAM_MESSAGE_LIMIT,
)
from core.exceptions import CommunicationError

from .models import DeliveryMethod, DeliveryOutcome, DeliveryReport, NotificationMessage


logger = logging.getLogger(__name__)


RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

_TAG = re.compile(r"<[^>]+>")
ELLIPSIS = "…"


@dataclass(frozen=True)
class ApiResponse:
    """Outcome of a single Bot API call."""

    ok: bool
    status: Optional[int]
    result: Any = None
    description: Optional[str] = None
    retry_after: Optional[float] = None

    @property
    def retryable(self) -> bool:
        # status None means the request never got an HTTP answer
        return not self.ok and (self.status is None or self.status in RETRYABLE_STATUSES)


# ============================================================
# TELEGRAM NOTIFIER
# ============================================================

class TelegramNotifier:
    """
    Sends notifications to Telegram.

    This is a notification-only client.
    NO control commands are processed.
    """

    BASE_URL = TELEGRAM_API_BASE

    def __init__(
        self,
        bot_token: str,
        chat_ids: Iterable[str],
        max_attempts: int = DEFAULT_TELEGRAM_MAX_ATTEMPTS,
        retry_delay: float = 1.0,
        request_timeout: float = 15.0,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize Telegram notifier.

        Args:
            bot_token: Telegram bot token
            chat_ids: Destination chat ids
            max_attempts: Attempts per destination for transient failures
            retry_delay: Base delay between attempts (linear backoff)
            request_timeout: Total timeout per API call in seconds
            session: Optional shared HTTP session (not closed by us)
            sleep: Awaitable sleep, replaceable in tests
        """
        if not bot_token:
            raise ValueError("bot_token is required")

        self._bot_token = bot_token
        self._chat_ids: Tuple[str, ...] = tuple(chat_ids)
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep

        logger.info(f"TelegramNotifier configured with {len(self._chat_ids)} chat(s)")

    @property
    def chat_ids(self) -> Tuple[str, ...]:
        return self._chat_ids

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the notifier."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    async def get_me(self) -> Dict[str, Any]:
        """
        Identify the bot (connectivity check).

        Raises:
            CommunicationError: if the bot cannot be reached or the
                token is rejected
        """
        response = await self._call("getMe", {})
        if not response.ok:
            raise CommunicationError(
                f"Telegram getMe failed: {response.description or 'no response'}",
                service="telegram",
                endpoint="getMe",
                status=response.status,
            )

        me = response.result if isinstance(response.result, dict) else {}
        logger.info(f"Telegram bot connected: @{me.get('username', 'unknown')}")
        return me

    async def send_text(self, text: str) -> DeliveryReport:
        """Send a plain HTML message to all destinations."""
        return await self.deliver(NotificationMessage(body=text))

    async def deliver(
        self,
        message: NotificationMessage,
        chat_ids: Optional[Iterable[str]] = None,
    ) -> DeliveryReport:
        """
        Deliver a message to every destination concurrently.

        Never raises on delivery failure; see the returned report.
        """
        targets = tuple(chat_ids) if chat_ids is not None else self._chat_ids

        results = await asyncio.gather(
            *(self._deliver_to(chat_id, message) for chat_id in targets),
            return_exceptions=True,
        )

        report = DeliveryReport()
        for chat_id, result in zip(targets, results):
            if isinstance(result, DeliveryOutcome):
                report.outcomes.append(result)
            elif isinstance(result, Exception):
                logger.error(f"Unexpected error delivering to chat {chat_id}: {result}")
                report.outcomes.append(
                    DeliveryOutcome(chat_id=chat_id, success=False, error=str(result))
                )
            else:
                raise result

        if report.all_failed:
            logger.error(f"Delivery failed for all {len(targets)} destination(s)")
        elif report.failed:
            logger.warning(
                f"Delivery failed for {len(report.failed)}/{len(targets)} destination(s): "
                f"{', '.join(report.failed)}"
            )

        return report

    # --------------------------------------------------------
    # Per-destination delivery
    # --------------------------------------------------------

    async def _deliver_to(self, chat_id: str, message: NotificationMessage) -> DeliveryOutcome:
        """Deliver to one chat, falling back from photo to text."""
        photo_attempts = 0

        if message.has_image and visible_length(message.body) <= TELEGRAM_CAPTION_LIMIT:
            outcome = await self._send_with_retry(
                chat_id,
                DeliveryMethod.PHOTO,
                {
                    "chat_id": chat_id,
                    "photo": message.image_url,
                    "caption": message.body,
                    "parse_mode": "HTML",
                },
            )
            if outcome.success:
                return outcome

            photo_attempts = outcome.attempts
            logger.warning(
                f"sendPhoto to chat {chat_id} failed ({outcome.error}), falling back to text"
            )

        outcome = await self._send_with_retry(
            chat_id,
            DeliveryMethod.TEXT,
            {
                "chat_id": chat_id,
                "text": clip_lines(message.body, TELEGRAM_MESSAGE_LIMIT),
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            },
        )
        if photo_attempts:
            outcome = dataclasses.replace(outcome, attempts=outcome.attempts + photo_attempts)
        return outcome

    async def _send_with_retry(
        self,
        chat_id: str,
        method: DeliveryMethod,
        payload: Dict[str, Any],
    ) -> DeliveryOutcome:
        """Call a send method, retrying transient failures."""
        attempt = 0
        response: Optional[ApiResponse] = None

        while attempt < self._max_attempts:
            attempt += 1
            response = await self._call(method.value, payload)

            if response.ok:
                result = response.result if isinstance(response.result, dict) else {}
                return DeliveryOutcome(
                    chat_id=chat_id,
                    success=True,
                    method=method,
                    attempts=attempt,
                    message_id=result.get("message_id"),
                )

            logger.error(
                f"Telegram {method.value} to chat {chat_id} failed "
                f"(attempt {attempt}/{self._max_attempts}): "
                f"{response.status} - {response.description}"
            )

            if not response.retryable or attempt >= self._max_attempts:
                break

            delay = response.retry_after if response.retry_after else self._retry_delay * attempt
            await self._sleep(delay)

        return DeliveryOutcome(
            chat_id=chat_id,
            success=False,
            method=method,
            attempts=attempt,
            error=(response.description if response else None) or "unknown error",
        )

    async def _call(self, method: str, payload: Dict[str, Any]) -> ApiResponse:
        """Perform one Bot API call. Network failures become ApiResponse(ok=False)."""
        url = f"{self.BASE_URL}{self._bot_token}/{method}"

        try:
            session = await self._get_session()
            async with session.post(url, json=payload) as response:
                try:
                    data = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    data = None
                if not isinstance(data, dict):
                    data = {}

                if response.status == 200 and data.get("ok"):
                    return ApiResponse(ok=True, status=response.status, result=data.get("result"))

                parameters = data.get("parameters") or {}
                return ApiResponse(
                    ok=False,
                    status=response.status,
                    description=data.get("description") or f"HTTP {response.status}",
                    retry_after=parameters.get("retry_after"),
                )

        except asyncio.TimeoutError:
            return ApiResponse(ok=False, status=None, description="request timed out")
        except aiohttp.ClientError as e:
            return ApiResponse(ok=False, status=None, description=f"{type(e).__name__}: {e}")


# ============================================================
# HTML LENGTH
# ============================================================

def visible_length(text: str) -> int:
    """
    Length of HTML text as Telegram counts it.

    Telegram applies its caption and message limits after entity
    parsing: tags and attribute values are not counted and each
    entity (&amp;, &lt;) counts as one character. Lengths are in
    UTF-16 code units, so most emoji count twice.
    """
    visible = html.unescape(_TAG.sub("", text))
    return len(visible.encode("utf-16-le")) // 2


def clip_lines(text: str, limit: int) -> str:
    """
    Clip HTML text to `limit` visible characters on line boundaries.

    Each line produced by the formatter is self-contained markup,
    so dropping whole trailing lines never leaves an open tag or
    a split entity behind.
    """
    if visible_length(text) <= limit:
        return text

    kept = []
    used = len(ELLIPSIS)
    for line in text.split("\n"):
        cost = visible_length(line) + 1
        if used + cost > limit:
            break
        kept.append(line)
        used += cost

    kept.append(ELLIPSIS)
    return "\n".join(kept)


__all__ = ["TelegramNotifier", "ApiResponse", "RETRYABLE_STATUSES", "visible_length", "clip_lines"]
