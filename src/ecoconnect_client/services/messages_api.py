"""
Company-to-company messaging.

POST /contacts creates the relation with a company and answers with its
conversation; a 409 means the relation already exists and carries the same
payload shape.
"""

import logging
from typing import Any

from ecoconnect_client.errors import ApiError, ValidationError, is_not_found
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import (
    CompanyConversation,
    CompanyMessage,
    ContactResult,
)
from ecoconnect_client.normalizers.fields import ensure_dict
from ecoconnect_client.normalizers.messaging import (
    extract_conversation,
    extract_conversation_id,
    map_conversation,
    map_message,
    normalize_conversation_list,
    normalize_message_list,
)

logger = logging.getLogger(__name__)


def _require(value: Any, name: str) -> None:
    if not value:
        raise ValidationError(f"{name} requis")


def _resolve_contact(client: ApiClient, payload: Any, already_exists: bool) -> ContactResult:
    conversation = extract_conversation(payload)
    conversation_id = conversation.id if conversation else extract_conversation_id(payload)
    if conversation is None and conversation_id:
        fetched = get_conversation(client, conversation_id)
        if fetched is not None and fetched.id:
            conversation = fetched
    return ContactResult(
        conversation=conversation,
        conversation_id=conversation_id,
        already_exists=already_exists,
    )


def create_contact(client: ApiClient, company_id: str) -> ContactResult:
    _require(company_id, "companyId")
    try:
        payload = client.post("/contacts", json={"companyId": company_id})
    except ApiError as exc:
        if exc.status != 409:
            raise
        logger.info("Contact with company %s already exists", company_id)
        return _resolve_contact(client, exc.body, already_exists=True)
    return _resolve_contact(client, payload, already_exists=False)


def get_conversations(
    client: ApiClient, params: dict[str, Any] | None = None
) -> tuple[list[CompanyConversation], dict[str, int]]:
    try:
        payload = client.get("/contacts", params=params)
    except ApiError as exc:
        if is_not_found(exc):
            return [], {"total": 0, "unread": 0}
        raise
    return normalize_conversation_list(payload)


def get_conversation(client: ApiClient, conversation_id: str) -> CompanyConversation | None:
    _require(conversation_id, "conversationId")
    try:
        payload = client.get(f"/contacts/messages/{conversation_id}")
    except ApiError as exc:
        if is_not_found(exc):
            return None
        raise
    root = ensure_dict(payload)
    return map_conversation(root.get("conversation") or payload)


def get_messages(
    client: ApiClient,
    conversation_id: str,
    params: dict[str, Any] | None = None,
    current_user_id: str | None = None,
) -> list[CompanyMessage]:
    _require(conversation_id, "conversationId")
    try:
        payload = client.get(f"/contacts/messages/{conversation_id}", params=params)
    except ApiError as exc:
        if is_not_found(exc):
            return []
        raise
    return normalize_message_list(payload, current_user_id)


def send_message(
    client: ApiClient,
    conversation_id: str,
    body: str,
    current_user_id: str | None = None,
) -> CompanyMessage | None:
    _require(conversation_id, "conversationId")
    if not body or not body.strip():
        raise ValidationError("body requis")
    payload = client.post(
        "/contacts/messages",
        json={"conversationId": conversation_id, "body": body.strip()},
    )
    root = ensure_dict(payload)
    return map_message(root.get("message") or payload, current_user_id)


def mark_as_read(client: ApiClient, conversation_id: str) -> None:
    _require(conversation_id, "conversationId")
    client.post(f"/contacts/conversations/{conversation_id}/mark-read")


def create_conversation(
    client: ApiClient, company_id: str, initial_message: str | None = None
) -> CompanyConversation:
    """Ensure a contact exists, locate its conversation, optionally open it with a message."""
    _require(company_id, "companyId")
    contact = create_contact(client, company_id)
    conversation = contact.conversation

    if (conversation is None or not conversation.id) and contact.conversation_id:
        conversation = get_conversation(client, contact.conversation_id)

    if conversation is None or not conversation.id:
        conversations, _ = get_conversations(client)
        conversation = next(
            (c for c in conversations if str(c.company_id) == str(company_id)),
            None,
        )

    if conversation is None or not conversation.id:
        raise ApiError("Impossible de créer la conversation")

    if initial_message and initial_message.strip():
        send_message(client, conversation.id, initial_message)
    return conversation
