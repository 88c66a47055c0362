"""
Assistant chat.

After a message is sent the view polls the updates endpoint every
`poll_interval` seconds until new messages arrive or the status becomes
terminal. A rate-limited status (or a 429 answer) starts a countdown during
which sending is refused:

    idle -> polling -> resolved
                    -> rate_limited -> idle (countdown elapsed)
"""

import logging
import math
import threading
import time
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.query_cache import QueryCache, QueryOptions, QueryResult
from ecoconnect_client.errors import (
    ApiError,
    ValidationError,
    error_message,
    is_rate_limited,
    retry_after_from_error,
)
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import (
    AssistantConversation,
    AssistantMessage,
    AssistantUpdates,
)
from ecoconnect_client.normalizers.assistant import (
    DEFAULT_RETRY_AFTER_SECONDS,
    is_rate_limited_status,
    is_terminal_status,
    last_assistant_message,
    message_signals_rate_limit,
    normalize_conversation,
    normalize_conversation_list,
    normalize_message_list,
    normalize_template_list,
    normalize_updates,
    parse_retry_after,
)
from ecoconnect_client.normalizers.fields import unwrap_data
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.services import assistant_api

logger = logging.getLogger(__name__)

TEMPLATES_STALE_TIME = 10 * 60
CONVERSATIONS_STALE_TIME = 30
MESSAGES_STALE_TIME = 5
DEFAULT_POLL_INTERVAL = 2.0


class RateLimitCountdown:
    """Seconds left before sending is allowed again."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.clock = clock
        self._until: Optional[float] = None
        self._lock = threading.Lock()

    def start(self, retry_after: Any) -> int:
        now = self.clock()
        until = parse_retry_after(retry_after, now)
        if until is None:
            until = now + DEFAULT_RETRY_AFTER_SECONDS
        with self._lock:
            self._until = until
        remaining = self.remaining
        logger.info("Assistant rate limited for %ss", remaining)
        return remaining

    @property
    def remaining(self) -> int:
        with self._lock:
            until = self._until
        if until is None:
            return 0
        return max(0, math.ceil(until - self.clock()))

    @property
    def active(self) -> bool:
        return self.remaining > 0

    def reset(self) -> None:
        with self._lock:
            self._until = None


@dataclass
class PollOutcome:
    state: str
    messages: list[AssistantMessage] = field(default_factory=list)
    updates: Optional[AssistantUpdates] = None
    polls: int = 0


def _merge_messages(
    old: Optional[list[AssistantMessage]], incoming: list[AssistantMessage]
) -> list[AssistantMessage]:
    merged = list(old or [])
    known = {message.id for message in merged}
    merged.extend(message for message in incoming if message.id not in known)
    return merged


class AssistantView:
    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        notifier: Notifier,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self.poll_interval = poll_interval
        self.clock = clock
        self.countdown = RateLimitCountdown(clock)
        self._state = "idle"
        self.last_sent_at: Optional[str] = None
        self.conversation_id: Optional[str] = None
        self._stop = threading.Event()
        self._poller: Optional[threading.Thread] = None

    @property
    def state(self) -> str:
        # rate_limited falls back to idle once the countdown has elapsed
        if self._state == "rate_limited" and not self.countdown.active:
            return "idle"
        return self._state

    @state.setter
    def state(self, value: str) -> None:
        self._state = value

    # Reads

    def templates(self) -> QueryResult:
        return self.cache.query(
            keys.assistant_templates(),
            lambda: normalize_template_list(assistant_api.get_templates(self.client)),
            QueryOptions(stale_time=TEMPLATES_STALE_TIME),
        )

    def conversations(self, params: Optional[dict[str, Any]] = None) -> QueryResult:
        return self.cache.query(
            keys.assistant_conversations(),
            lambda: normalize_conversation_list(
                assistant_api.get_conversations(self.client, params)
            ),
            QueryOptions(stale_time=CONVERSATIONS_STALE_TIME),
        )

    def messages(self, conversation_id: Optional[str]) -> QueryResult:
        return self.cache.query(
            keys.assistant_messages(conversation_id or ""),
            lambda: normalize_message_list(
                assistant_api.get_messages(self.client, conversation_id)
            ),
            QueryOptions(stale_time=MESSAGES_STALE_TIME, enabled=bool(conversation_id)),
        )

    # Actions

    def create_conversation(self, payload: Optional[dict[str, Any]] = None) -> Optional[AssistantConversation]:
        try:
            raw = assistant_api.create_conversation(self.client, payload)
        except ApiError as exc:
            logger.error("Error creating assistant conversation: %s", exc)
            self.notifier.error(error_message(exc, "Impossible de créer la conversation"))
            raise
        conversation = normalize_conversation(unwrap_data(raw))
        self.notifier.success("Nouvelle conversation IA créée")
        self.cache.invalidate(keys.assistant_conversations())
        return conversation

    def can_send(self) -> bool:
        return not self.countdown.active

    def send_message(self, conversation_id: str, text: str, **extra: Any) -> Any:
        if not text or not text.strip():
            raise ValidationError("Le message ne peut pas être vide")
        if not self.can_send():
            raise ValidationError(
                f"Limite atteinte. Réessayez dans {self.countdown.remaining} secondes."
            )

        payload = {"conversationId": conversation_id, "message": text.strip(), **extra}
        try:
            result = assistant_api.send_message(self.client, payload)
        except ApiError as exc:
            logger.error("Error sending assistant message: %s", exc)
            if is_rate_limited(exc):
                remaining = self.countdown.start(retry_after_from_error(exc))
                self.state = "rate_limited"
                self.notifier.warning(f"Limite atteinte. Réessayez dans {remaining} secondes.")
            else:
                self.notifier.error(
                    error_message(exc, "Impossible d'envoyer le message pour le moment")
                )
            raise

        # updates older than this belong to the thread history
        self.last_sent_at = datetime.fromtimestamp(self.clock(), tz=timezone.utc).isoformat()
        self.cache.invalidate(keys.assistant_messages(conversation_id))
        self.cache.invalidate(keys.assistant_conversations())
        return result

    def ask(
        self,
        conversation_id: str,
        text: str,
        sleep: Optional[Callable[[float], Any]] = None,
        max_polls: Optional[int] = None,
        **extra: Any,
    ) -> PollOutcome:
        """Send a message and wait for the answers written after it."""
        self.send_message(conversation_id, text, **extra)
        return self.poll_updates(
            conversation_id, since=self.last_sent_at, sleep=sleep, max_polls=max_polls
        )

    def ask_in_background(self, conversation_id: str, text: str, **extra: Any) -> threading.Thread:
        self.send_message(conversation_id, text, **extra)
        return self.start_polling(conversation_id, since=self.last_sent_at)

    def escalate(self, payload: Optional[dict[str, Any]] = None) -> Any:
        try:
            result = assistant_api.escalate(self.client, payload)
        except ApiError as exc:
            logger.error("Error escalating to support: %s", exc)
            self.notifier.error(
                error_message(exc, "Impossible de contacter le support pour le moment")
            )
            raise
        self.notifier.success("Demande transmise à l'équipe support")
        return result

    def detect_rate_limit(self, messages: list[AssistantMessage]) -> bool:
        """Start the countdown when the latest assistant answer reports a rate limit."""
        message = last_assistant_message(messages)
        if message is None or not message_signals_rate_limit(message):
            return False
        self.countdown.start(message.retry_after)
        self.state = "rate_limited"
        return True

    # Polling

    def fetch_updates(self, conversation_id: str, since: Optional[str] = None) -> AssistantUpdates:
        return normalize_updates(assistant_api.get_updates(self.client, conversation_id, since))

    def poll_updates(
        self,
        conversation_id: str,
        since: Optional[str] = None,
        sleep: Optional[Callable[[float], Any]] = None,
        max_polls: Optional[int] = None,
        stop: Optional[threading.Event] = None,
    ) -> PollOutcome:
        wait = sleep or (stop.wait if stop is not None else time.sleep)
        self.state = "polling"
        polls = 0

        while max_polls is None or polls < max_polls:
            wait(self.poll_interval)
            if stop is not None and stop.is_set():
                self.state = "idle"
                return PollOutcome("cancelled", polls=polls)

            try:
                updates = self.fetch_updates(conversation_id, since)
            except ApiError as exc:
                if not is_rate_limited(exc):
                    self.state = "idle"
                    raise
                self.countdown.start(retry_after_from_error(exc))
                self.state = "rate_limited"
                return PollOutcome("rate_limited", polls=polls + 1)
            polls += 1

            if updates.messages:
                self.cache.set(
                    keys.assistant_messages(conversation_id),
                    lambda old: _merge_messages(old, updates.messages),
                )
                self.cache.invalidate(keys.assistant_conversations())

            if is_rate_limited_status(updates.status):
                self.countdown.start(updates.retry_after)
                self.state = "rate_limited"
                return PollOutcome("rate_limited", updates.messages, updates, polls)
            if self.detect_rate_limit(updates.messages):
                return PollOutcome("rate_limited", updates.messages, updates, polls)

            if updates.messages or is_terminal_status(updates.status):
                self.state = "resolved"
                return PollOutcome("resolved", updates.messages, updates, polls)

            if updates.updated_at is not None:
                since = updates.updated_at.isoformat()

        logger.debug("Stopped polling %s after %s polls", conversation_id, polls)
        self.state = "idle"
        return PollOutcome("exhausted", polls=polls)

    def start_polling(self, conversation_id: str, since: Optional[str] = None) -> threading.Thread:
        self.stop_polling()
        stop = threading.Event()
        self._stop = stop
        self._poller = threading.Thread(
            target=self._poll_in_background,
            args=(conversation_id, since, stop),
            name=f"assistant-poll-{conversation_id}",
            daemon=True,
        )
        self._poller.start()
        return self._poller

    def _poll_in_background(self, conversation_id: str, since: Optional[str], stop: threading.Event) -> None:
        try:
            self.poll_updates(conversation_id, since, stop=stop)
        except (ApiError, ValidationError):
            logger.exception("Assistant polling for %s failed", conversation_id)

    def stop_polling(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        poller = self._poller
        if poller is not None and poller is not threading.current_thread():
            poller.join(timeout)
        self._poller = None

    def select_conversation(self, conversation_id: Optional[str]) -> QueryResult:
        self.stop_polling()
        if self.state == "polling":
            self.state = "idle"
        self.conversation_id = conversation_id
        return self.messages(conversation_id)
