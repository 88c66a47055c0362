from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from ecoconnect_client.models.schemas import (
    ActionSegment,
    AssistantConversation,
    AssistantMessage,
    AssistantTemplate,
    AssistantUpdates,
    ButtonSegment,
    LinkSegment,
    Segment,
    TextSegment,
)
from ecoconnect_client.normalizers.fields import (
    coerce_date,
    coerce_number,
    coerce_string,
    ensure_array,
    ensure_dict,
    pick_first,
    unwrap_data,
)

logger = logging.getLogger(__name__)

EMPTY_MESSAGE_TEXT = "Message vide"

ROLES = {"user", "assistant", "system"}
_ROLE_ALIASES = {
    "human": "user",
    "customer": "user",
    "bot": "assistant",
    "ai": "assistant",
    "model": "assistant",
}

TERMINAL_STATUSES = {"completed", "awaiting_user", "awaiting-user", "error", "failed"}
_RATE_LIMIT_MARKERS = ("rate", "limit", "capacity")
_RATE_LIMIT_PHRASES = ("capacité mistral", "limite atteinte")

# retryAfter magnitudes: below this it is seconds, above EPOCH_MS an absolute epoch.
_RETRY_SECONDS_MAX = 10_000
_RETRY_EPOCH_MS_MIN = 10_000_000_000
DEFAULT_RETRY_AFTER_SECONDS = 60.0

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalize_segment(segment: Any) -> Segment | None:
    if segment is None:
        return None
    if isinstance(segment, str):
        return TextSegment(text=segment)
    if not isinstance(segment, dict):
        text = coerce_string(segment)
        return TextSegment(text=text) if text is not None else None

    segment_type = pick_first(segment, ["type", "kind"], "text")
    if segment_type == "link":
        return LinkSegment(
            text=coerce_string(pick_first(segment, ["text", "label", "title"])) or "",
            href=coerce_string(pick_first(segment, ["href", "url"])) or "#",
        )
    if segment_type == "button":
        return ButtonSegment(
            text=coerce_string(pick_first(segment, ["text", "label"])) or "Action",
            payload=pick_first(segment, ["payload", "action"]),
        )
    if segment_type == "action":
        return ActionSegment(
            text=coerce_string(pick_first(segment, ["text", "label", "title"]))
            or "Action",
            action=coerce_string(pick_first(segment, ["action", "name", "command"]))
            or "",
            payload=segment.get("payload"),
        )
    return TextSegment(
        text=coerce_string(pick_first(segment, ["text", "content", "value"])) or ""
    )


def _segments_source(message: dict[str, Any]) -> Any:
    source = None
    for key in ("content", "segments", "body", "text", "message"):
        if message.get(key) is not None:
            source = message[key]
            break

    if isinstance(source, dict) and not source:
        source = pick_first(message, ["text", "body", "message"], "")

    if isinstance(source, str):
        stripped = source.strip()
        if stripped[:1] in ("[", "{"):
            try:
                source = json.loads(stripped)
            except ValueError:
                return [TextSegment(text=source)]
        else:
            return [TextSegment(text=source)]

    if isinstance(source, dict):
        if "text" in source or "type" in source:
            return [source]
        return ensure_array(source)
    return ensure_array(source)


def _has_text(segment: Segment) -> bool:
    return bool(segment.text and segment.text.strip())


def _fallback_text(
    message: dict[str, Any], keys: tuple[str, ...] = ("text", "message", "body", "content")
) -> str | None:
    for key in keys:
        value = message.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _normalize_role(value: Any) -> str:
    role = str(value or "assistant").strip().lower()
    role = _ROLE_ALIASES.get(role, role)
    return role if role in ROLES else "assistant"


def normalize_assistant_message(raw: Any, index: int = 0) -> AssistantMessage | None:
    """Fixed-shape chat message; `content` always holds at least one segment."""
    if isinstance(raw, str):
        raw = {"content": raw}
    if not isinstance(raw, dict) or not raw:
        return None

    segments: list[Segment] = []
    for item in _segments_source(raw):
        if isinstance(item, (TextSegment, LinkSegment, ButtonSegment, ActionSegment)):
            segment = item
        else:
            segment = normalize_segment(item)
        if segment is not None and _has_text(segment):
            segments.append(segment)

    if not segments:
        fallback = _fallback_text(raw)
        if fallback is None:
            logger.debug("Assistant message #%s had no usable text: %r", index, raw)
        segments = [TextSegment(text=fallback or EMPTY_MESSAGE_TEXT)]
    elif not any(isinstance(segment, TextSegment) for segment in segments):
        fallback = _fallback_text(raw, ("text", "message", "body"))
        if fallback is not None:
            segments.insert(0, TextSegment(text=fallback))

    meta = ensure_dict(raw.get("meta"))
    metadata = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else None
    retry_after = pick_first(
        raw,
        ["retryAfter", "retry_after", "meta.retryAfter", "metadata.retryAfter"],
    )

    return AssistantMessage(
        id=str(pick_first(raw, ["id", "messageId", "message_id"], f"msg-{index}")),
        role=_normalize_role(pick_first(raw, ["role", "author", "type"])),
        created_at=coerce_date(
            pick_first(raw, ["createdAt", "created_at", "timestamp", "sentAt"])
        ),
        status=str(pick_first(raw, ["status", "state", "messageStatus"], "completed")),
        content=segments,
        tokens_in=coerce_number(pick_first(raw, ["tokensIn", "promptTokens"])),
        tokens_out=coerce_number(pick_first(raw, ["tokensOut", "completionTokens"])),
        usage=pick_first(raw, ["tokens", "usage"]),
        retry_after=retry_after,
        metadata=metadata or meta or None,
    )


def _sort_key(message: AssistantMessage) -> datetime:
    return message.created_at or _EPOCH


def normalize_message_list(payload: Any) -> list[AssistantMessage]:
    unwrapped = unwrap_data(payload)
    if isinstance(unwrapped, list):
        raw_messages = unwrapped
    elif isinstance(unwrapped, dict) and unwrapped.get("messages"):
        raw_messages = ensure_array(unwrapped["messages"])
    else:
        raw_messages = ensure_array(unwrapped)

    messages = [
        message
        for index, item in enumerate(raw_messages)
        if (message := normalize_assistant_message(item, index)) is not None
    ]
    return sorted(messages, key=_sort_key)


def normalize_conversation(raw: Any, index: int = 0) -> AssistantConversation | None:
    if not isinstance(raw, dict) or not raw:
        return None
    return AssistantConversation(
        id=str(pick_first(raw, ["id", "conversationId", "conversation_id"], str(index))),
        title=coerce_string(pick_first(raw, ["title", "name"]))
        or "Conversation sans titre",
        status=str(pick_first(raw, ["status", "state"], "ACTIVE")),
        last_message_at=coerce_date(
            pick_first(
                raw,
                [
                    "lastMessageAt",
                    "last_message_at",
                    "updatedAt",
                    "updated_at",
                    "createdAt",
                    "created_at",
                ],
            )
        ),
    )


def normalize_conversation_list(payload: Any) -> list[AssistantConversation]:
    unwrapped = unwrap_data(payload)
    if isinstance(unwrapped, dict):
        unwrapped = pick_first(unwrapped, ["items", "records", "data", "results"])
    return [
        conversation
        for index, item in enumerate(ensure_array(unwrapped))
        if (conversation := normalize_conversation(item, index)) is not None
    ]


def normalize_template(raw: Any, index: int = 0) -> AssistantTemplate | None:
    if not isinstance(raw, dict):
        return None
    return AssistantTemplate(
        id=str(pick_first(raw, ["id", "templateId"], str(index))),
        label=coerce_string(pick_first(raw, ["label", "name", "title"]))
        or "Action rapide",
        prompt=coerce_string(pick_first(raw, ["prompt", "description"])) or "",
    )


def normalize_template_list(payload: Any) -> list[AssistantTemplate]:
    return [
        template
        for index, item in enumerate(ensure_array(unwrap_data(payload)))
        if (template := normalize_template(item, index)) is not None
    ]


def normalize_updates(raw: Any) -> AssistantUpdates:
    payload = unwrap_data(raw)
    if payload is None:
        payload = raw
    payload_dict = ensure_dict(payload)
    raw_dict = ensure_dict(raw)

    if isinstance(payload, list):
        raw_messages = payload
    else:
        raw_messages = ensure_array(
            pick_first(payload_dict, ["messages", "data"]) or payload_dict.get("items")
        )
    messages = [
        message
        for index, item in enumerate(raw_messages)
        if (message := normalize_assistant_message(item, index)) is not None
    ]

    status_normalized = pick_first(payload_dict, ["statusNormalized"]) or pick_first(
        raw_dict, ["statusNormalized"]
    )
    status = status_normalized or pick_first(payload_dict, ["status"]) or pick_first(
        raw_dict, ["status"]
    )
    retry_after = pick_first(payload_dict, ["retryAfter", "meta.retryAfter"])
    if retry_after is None:
        retry_after = pick_first(raw_dict, ["retryAfter"])

    return AssistantUpdates(
        messages=messages,
        status=coerce_string(status),
        status_normalized=coerce_string(status_normalized),
        retry_after=retry_after,
        tokens=pick_first(payload_dict, ["tokens", "tokensOut", "usage"]),
        tokens_in=coerce_number(payload_dict.get("tokensIn")),
        tokens_out=coerce_number(payload_dict.get("tokensOut")),
        updated_at=coerce_date(payload_dict.get("updatedAt")),
    )


def is_rate_limited_status(status: Any) -> bool:
    if not isinstance(status, str):
        return False
    lowered = status.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def is_terminal_status(status: Any) -> bool:
    return isinstance(status, str) and status.lower() in TERMINAL_STATUSES


def message_signals_rate_limit(message: AssistantMessage) -> bool:
    if is_rate_limited_status(message.status):
        return True
    text = message.text.lower()
    return any(phrase in text for phrase in _RATE_LIMIT_PHRASES)


def last_assistant_message(messages: list[AssistantMessage]) -> AssistantMessage | None:
    for message in reversed(messages):
        if message.role == "assistant":
            return message
    return None


def parse_retry_after(value: Any, now: float) -> float | None:
    """Absolute epoch seconds at which sending is allowed again.

    Numbers below 10 000 are seconds, numbers above 10 000 000 000 are an
    absolute epoch in milliseconds, anything in between is a relative delay
    in milliseconds. Strings may also be ISO or HTTP dates.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return now + DEFAULT_RETRY_AFTER_SECONDS
        if value <= 0:
            return now
        if value < _RETRY_SECONDS_MAX:
            return now + value
        if value > _RETRY_EPOCH_MS_MIN:
            return value / 1000
        return now + value / 1000

    if isinstance(value, str):
        text = value.strip()
        numeric = coerce_number(text)
        if numeric is not None and numeric > 0:
            if numeric > _RETRY_SECONDS_MAX:
                return now + numeric / 1000
            return now + numeric
        parsed = coerce_date(text)
        if parsed is None:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.timestamp()

    return now + DEFAULT_RETRY_AFTER_SECONDS
