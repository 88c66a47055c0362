from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from ecoconnect_client.models.schemas import (
    Attachment,
    CompanyConversation,
    CompanyMessage,
    Participant,
)
from ecoconnect_client.normalizers.fields import (
    coerce_date,
    coerce_int,
    coerce_number,
    ensure_array,
    ensure_dict,
    get_nested,
)


def _coalesce(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _text(value: Any, default: str = "") -> str:
    if not value:
        return default
    return str(value)


def _optional_str(value: Any) -> str | None:
    return str(value) if value else None


def _map_participant(raw: Any) -> Participant:
    raw = ensure_dict(raw)
    return Participant(
        id=_optional_str(_coalesce(raw.get("id"), raw.get("user_id"), raw.get("uuid"))),
        name=_text(
            _coalesce(
                raw.get("name"),
                raw.get("full_name"),
                raw.get("email"),
                raw.get("display_name"),
            ),
            "Contact",
        ),
        role=_coalesce(raw.get("role"), raw.get("type"), raw.get("participant_role")),
    )


def map_conversation(raw: Any) -> CompanyConversation | None:
    if not isinstance(raw, dict):
        return None

    data = ensure_dict(raw.get("data"))
    company = ensure_dict(
        _coalesce(raw.get("company"), raw.get("companyData"), data.get("company"))
    )
    conversation_id = _coalesce(
        raw.get("id"),
        raw.get("conversation_id"),
        raw.get("conversationId"),
        raw.get("uuid"),
        raw.get("conversation_uuid"),
        raw.get("id_conversation"),
        data.get("id"),
    )
    company_id = _coalesce(
        raw.get("company_id"),
        raw.get("companyId"),
        raw.get("id_company"),
        company.get("id"),
        company.get("uuid"),
        company.get("id_company"),
    )
    company_name = _coalesce(
        raw.get("company_name"),
        raw.get("companyName"),
        company.get("name"),
        company.get("company_name"),
        raw.get("name"),
    )
    message_count = _coalesce(
        raw.get("message_count"),
        raw.get("messageCount"),
        raw.get("messages_count"),
        raw.get("total_messages"),
        data.get("message_count"),
    )

    last_message = _coalesce(
        raw.get("last_message"),
        raw.get("lastMessage"),
        data.get("last_message"),
        raw.get("latest_message"),
    )
    if isinstance(last_message, dict):
        last_body = _coalesce(
            last_message.get("content"),
            last_message.get("body"),
            last_message.get("message"),
            "",
        )
        last_created = _coalesce(
            last_message.get("created_at"),
            last_message.get("createdAt"),
            last_message.get("sent_at"),
        )
    else:
        last_body = last_message if isinstance(last_message, str) else ""
        last_created = None

    participants = ensure_array(
        _coalesce(raw.get("participants"), raw.get("members"), data.get("participants"))
    )

    return CompanyConversation(
        id=_optional_str(conversation_id),
        company_id=_optional_str(company_id),
        company_name=_text(company_name, "Entreprise"),
        company_sector=_coalesce(
            raw.get("company_sector"),
            raw.get("companySector"),
            company.get("sector"),
            company.get("company_sector"),
        ),
        unread_count=coerce_int(
            _coalesce(raw.get("unread_count"), raw.get("unreadCount"), raw.get("unread"))
        ),
        message_count=coerce_int(message_count) if message_count is not None else None,
        last_message_preview=_text(
            _coalesce(
                raw.get("last_message_preview"),
                raw.get("lastMessagePreview"),
                last_body,
            )
        ),
        last_message_at=coerce_date(
            _coalesce(
                raw.get("last_message_at"),
                raw.get("lastMessageAt"),
                last_created,
                raw.get("updated_at"),
                raw.get("updatedAt"),
            )
        ),
        last_sender=_coalesce(
            raw.get("last_sender"), raw.get("lastSender"), raw.get("last_sender_role")
        ),
        participants=[_map_participant(p) for p in participants if isinstance(p, dict)],
    )


def _map_attachment(raw: Any) -> Attachment:
    raw = ensure_dict(raw)
    return Attachment(
        id=_optional_str(_coalesce(raw.get("id"), raw.get("name"), raw.get("url"))),
        name=_text(_coalesce(raw.get("name"), raw.get("filename")), "Fichier"),
        url=_coalesce(raw.get("url"), raw.get("link")),
        size=coerce_number(raw.get("size")),
    )


def map_message(raw: Any, current_user_id: str | None = None) -> CompanyMessage | None:
    if not isinstance(raw, dict):
        return None

    author_id = _coalesce(raw.get("author_id"), raw.get("authorId"), raw.get("user_id"))
    created_at = coerce_date(
        _coalesce(raw.get("created_at"), raw.get("createdAt"), raw.get("sent_at"))
    )
    return CompanyMessage(
        id=str(_coalesce(raw.get("id"), raw.get("message_id")) or uuid.uuid4()),
        conversation_id=_optional_str(
            _coalesce(raw.get("conversation_id"), raw.get("conversationId"))
        ),
        author_id=_optional_str(author_id),
        author_name=_text(
            _coalesce(
                raw.get("author_name"), raw.get("authorName"), raw.get("sender_name")
            ),
            "Contact",
        ),
        author_role=_coalesce(
            raw.get("author_role"), raw.get("authorRole"), raw.get("role")
        ),
        content=_text(_coalesce(raw.get("content"), raw.get("body"), raw.get("message"))),
        created_at=created_at or datetime.now(timezone.utc),
        attachments=[
            _map_attachment(item)
            for item in ensure_array(raw.get("attachments"))
            if isinstance(item, dict)
        ],
        is_own=bool(
            current_user_id is not None
            and author_id is not None
            and str(author_id) == str(current_user_id)
        ),
    )


_CONVERSATION_ID_PATHS = (
    "conversationId",
    "conversation_id",
    "conversation_uuid",
    "id_conversation",
    "conversation.id",
    "conversation.conversation_id",
    "data.conversationId",
    "data.conversation_id",
    "data.conversation.id",
    "relation.conversationId",
    "contact.conversationId",
)

_CONVERSATION_PATHS = (
    "conversation",
    "data.conversation",
    "conversationData",
    "data.conversationData",
    "relation.conversation",
    "contact.conversation",
)


def extract_conversation_id(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    for path in _CONVERSATION_ID_PATHS:
        candidate = get_nested(payload, path)
        if candidate is not None:
            return str(candidate)
    return None


def extract_conversation(payload: Any) -> CompanyConversation | None:
    """First embedded conversation with an id, trying the payload itself last."""
    if not isinstance(payload, dict):
        return None
    candidates = [get_nested(payload, path) for path in _CONVERSATION_PATHS]
    candidates.append(payload)
    for candidate in candidates:
        mapped = map_conversation(candidate)
        if mapped is not None and mapped.id:
            return mapped
    return None


def normalize_conversation_list(payload: Any) -> tuple[list[CompanyConversation], dict[str, int]]:
    items: Any = None
    for path in ("conversations", "data.conversations", "data.items", "items"):
        candidate = get_nested(payload, path)
        if isinstance(candidate, list):
            items = candidate
            break
    if items is None:
        if isinstance(payload, list):
            items = payload
        else:
            root = ensure_dict(payload)
            items = ensure_array(_coalesce(root.get("data"), payload))

    conversations = [
        conversation
        for conversation in (map_conversation(item) for item in items)
        if conversation is not None and conversation.id
    ]
    root = ensure_dict(payload)
    meta = {
        "total": coerce_int(root.get("total"), len(conversations)),
        "unread": coerce_int(_coalesce(root.get("unread"), root.get("unread_count"))),
    }
    return conversations, meta


def normalize_message_list(
    payload: Any, current_user_id: str | None = None
) -> list[CompanyMessage]:
    root = ensure_dict(payload)
    items = _coalesce(
        root.get("messages"),
        get_nested(root, "data.messages"),
        root.get("data"),
        payload,
    )
    return [
        message
        for message in (map_message(item, current_user_id) for item in ensure_array(items))
        if message is not None
    ]
