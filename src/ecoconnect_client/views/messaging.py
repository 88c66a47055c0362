import dataclasses
import logging
from typing import Any, Callable, Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.query_cache import QueryCache, QueryOptions, QueryResult
from ecoconnect_client.errors import ApiError, ValidationError, error_message
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import CompanyConversation, CompanyMessage, ContactResult
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.services import messages_api

logger = logging.getLogger(__name__)

CONVERSATIONS_STALE_TIME = 30
MESSAGES_STALE_TIME = 10


def _failure_text(error: BaseException, default: str) -> str:
    return error_message(error, str(error) or default)


def _append_message(
    old: Optional[list[CompanyMessage]], message: CompanyMessage
) -> list[CompanyMessage]:
    existing = list(old or [])
    if any(item.id == message.id for item in existing):
        return existing
    return existing + [dataclasses.replace(message, is_own=True)]


class MessagingView:
    """Company-to-company conversations."""

    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        notifier: Notifier,
        current_user_id: Optional[Callable[[], Optional[str]]] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self.current_user_id = current_user_id or (lambda: None)

    def conversations(self, params: Optional[dict[str, Any]] = None) -> QueryResult:
        return self.cache.query(
            keys.company_conversations(),
            lambda: messages_api.get_conversations(self.client, params),
            QueryOptions(stale_time=CONVERSATIONS_STALE_TIME),
        )

    def conversation(self, conversation_id: Optional[str]) -> QueryResult:
        return self.cache.query(
            keys.company_conversation(conversation_id or ""),
            lambda: messages_api.get_conversation(self.client, conversation_id),
            QueryOptions(stale_time=CONVERSATIONS_STALE_TIME, enabled=bool(conversation_id)),
        )

    def messages(self, conversation_id: Optional[str], params: Optional[dict[str, Any]] = None) -> QueryResult:
        return self.cache.query(
            keys.company_conversation_messages(conversation_id or ""),
            lambda: messages_api.get_messages(
                self.client, conversation_id, params, self.current_user_id()
            ),
            QueryOptions(stale_time=MESSAGES_STALE_TIME, enabled=bool(conversation_id)),
        )

    def ensure_contact(self, company_id: str) -> ContactResult:
        try:
            result = messages_api.create_contact(self.client, company_id)
        except (ApiError, ValidationError) as exc:
            self.notifier.error(_failure_text(exc, "Impossible de creer la relation"))
            raise
        self.cache.invalidate(keys.company_conversations())
        self.cache.invalidate(keys.dashboard_companies())
        self.cache.invalidate(keys.dashboard_stats())
        return result

    def create_conversation(self, company_id: str, initial_message: Optional[str] = None) -> CompanyConversation:
        try:
            conversation = messages_api.create_conversation(
                self.client, company_id, initial_message
            )
        except (ApiError, ValidationError) as exc:
            logger.error("Error creating conversation with %s: %s", company_id, exc)
            self.notifier.error(_failure_text(exc, "Impossible de creer la conversation"))
            raise
        self.notifier.success("Conversation creee")
        self.cache.invalidate(keys.company_conversations())
        if conversation.id:
            self.cache.invalidate(keys.company_conversation(conversation.id))
        return conversation

    def send(self, conversation_id: str, body: str) -> Optional[CompanyMessage]:
        try:
            message = messages_api.send_message(
                self.client, conversation_id, body, self.current_user_id()
            )
        except (ApiError, ValidationError) as exc:
            logger.error("Error sending message to %s: %s", conversation_id, exc)
            self.notifier.error(_failure_text(exc, "Impossible d'envoyer le message"))
            raise
        self.notifier.success("Message envoye")
        if message is not None:
            target = message.conversation_id or conversation_id
            messages_key = keys.company_conversation_messages(target)
            self.cache.set(messages_key, lambda old: _append_message(old, message))
            self.cache.invalidate(messages_key)
        self.cache.invalidate(keys.company_conversations())
        return message

    def mark_as_read(self, conversation_id: Optional[str]) -> None:
        if not conversation_id:
            return
        messages_api.mark_as_read(self.client, conversation_id)
        self.cache.invalidate(keys.company_conversations())
        self.cache.invalidate(keys.company_conversation(conversation_id))
