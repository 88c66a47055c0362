from typing import Any

from ecoconnect_client.errors import ValidationError
from ecoconnect_client.http.client import ApiClient


def _require_conversation(conversation_id: str | None, purpose: str) -> str:
    if not conversation_id:
        raise ValidationError(f"conversationId requis pour récupérer {purpose}")
    return conversation_id


def get_templates(client: ApiClient) -> Any:
    return client.get("/assistant/templates")


def get_conversations(client: ApiClient, params: dict[str, Any] | None = None) -> Any:
    return client.get("/assistant/conversations", params=params)


def create_conversation(client: ApiClient, payload: dict[str, Any] | None = None) -> Any:
    return client.post(
        "/assistant/conversations",
        json=payload if isinstance(payload, dict) else {},
    )


def get_messages(client: ApiClient, conversation_id: str) -> Any:
    conversation_id = _require_conversation(conversation_id, "les messages")
    return client.get(f"/assistant/conversations/{conversation_id}/messages")


def get_updates(client: ApiClient, conversation_id: str, since: str | None = None) -> Any:
    conversation_id = _require_conversation(conversation_id, "les mises à jour")
    return client.get(
        f"/assistant/conversations/{conversation_id}/updates",
        params={"since": since} if since else None,
    )


def send_message(client: ApiClient, payload: dict[str, Any]) -> Any:
    return client.post("/assistant/messages", json=payload)


def escalate(client: ApiClient, payload: dict[str, Any] | None = None) -> Any:
    return client.post("/assistant/escalations", json=payload or {})
