import dataclasses
import logging
from datetime import datetime
from typing import Any, Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.optimistic import OptimisticMutation
from ecoconnect_client.cache.query_cache import QueryCache, QueryOptions, QueryResult
from ecoconnect_client.errors import ApiError, error_message
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import Suggestion, SuggestionList
from ecoconnect_client.normalizers.suggestions import (
    STATUS_LABELS,
    filter_suggestions,
    normalize_suggestion_filters,
    normalize_suggestion_list,
    normalize_suggestion_stats,
)
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.services import suggestions_api

logger = logging.getLogger(__name__)

SUGGESTIONS_STALE_TIME = 5 * 60
FILTERS_STALE_TIME = 30 * 60


def _without(old: Optional[SuggestionList], suggestion_id: str) -> Optional[SuggestionList]:
    if old is None:
        return old
    return dataclasses.replace(
        old,
        suggestions=[s for s in old.suggestions if s.id != suggestion_id],
    )


def _marked_saved(old: Optional[SuggestionList], suggestion_id: str) -> Optional[SuggestionList]:
    if old is None:
        return old
    return dataclasses.replace(
        old,
        suggestions=[
            dataclasses.replace(s, status=STATUS_LABELS["saved"])
            if s.id == suggestion_id
            else s
            for s in old.suggestions
        ],
    )


class SuggestionsView:
    """Partner suggestions page: list, stats, filters and the card actions."""

    def __init__(self, client: ApiClient, cache: QueryCache, notifier: Notifier) -> None:
        self.client = client
        self.cache = cache
        self.notifier = notifier

        related = [keys.suggestions_stats()]
        self._ignore = OptimisticMutation(
            cache,
            keys.suggestions_list(),
            mutate=lambda suggestion_id: suggestions_api.ignore_suggestion(
                client, suggestion_id
            ),
            predict=_without,
            success_message="Suggestion ignorée",
            error_message="Erreur lors de l'action",
            invalidate=related,
            notifier=notifier,
        )
        self._save = OptimisticMutation(
            cache,
            keys.suggestions_list(),
            mutate=lambda suggestion_id: suggestions_api.save_suggestion(
                client, suggestion_id
            ),
            predict=_marked_saved,
            success_message="Suggestion sauvegardée",
            error_message="Erreur lors de la sauvegarde",
            invalidate=related,
            notifier=notifier,
        )

    def suggestions(self) -> QueryResult:
        return self.cache.query(
            keys.suggestions_list(),
            lambda: normalize_suggestion_list(
                suggestions_api.fetch_suggestions(self.client)
            ),
            QueryOptions(stale_time=SUGGESTIONS_STALE_TIME),
        )

    def stats(self) -> QueryResult:
        return self.cache.query(
            keys.suggestions_stats(),
            lambda: normalize_suggestion_stats(
                suggestions_api.fetch_suggestions_stats(self.client)
            ),
            QueryOptions(stale_time=SUGGESTIONS_STALE_TIME),
        )

    def filters(self) -> QueryResult:
        return self.cache.query(
            keys.suggestions_filters(),
            lambda: normalize_suggestion_filters(
                suggestions_api.fetch_suggestions_filters(self.client)
            ),
            QueryOptions(stale_time=FILTERS_STALE_TIME),
        )

    def filtered(self, filter_id: str = "all", now: Optional[datetime] = None) -> list[Suggestion]:
        result = self.suggestions()
        if result.data is None:
            return []
        return filter_suggestions(result.data.suggestions, filter_id, now)

    def ignore(self, suggestion_id: str) -> Any:
        return self._ignore(suggestion_id)

    def save(self, suggestion_id: str) -> Any:
        return self._save(suggestion_id)

    def contact(
        self,
        suggestion_id: str,
        message: Optional[str] = None,
        preferred_contact_method: Optional[str] = None,
    ) -> Any:
        try:
            result = suggestions_api.contact_suggestion(
                self.client, suggestion_id, message, preferred_contact_method
            )
        except ApiError as exc:
            logger.error("Error contacting company for %s: %s", suggestion_id, exc)
            self.notifier.error(
                error_message(exc, "Erreur lors de l'envoi de la demande")
            )
            raise
        finally:
            self.cache.invalidate(keys.suggestions_list())
            self.cache.invalidate(keys.suggestions_stats())
        self.notifier.success("Demande de contact envoyée avec succès")
        return result
