from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from ecoconnect_client.models.schemas import (
    FacetEntry,
    Suggestion,
    SuggestionList,
    SuggestionStats,
)
from ecoconnect_client.normalizers.fields import (
    coerce_date,
    coerce_int,
    coerce_number,
    coerce_string,
    ensure_array,
    ensure_dict,
    pick_first,
    string_list,
    unwrap_data,
)
from ecoconnect_client.normalizers.profile import normalize_facet_entries

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "new": "nouveau",
    "saved": "sauvegardé",
    "ignored": "ignoré",
    "contacted": "contacté",
}

HIGH_COMPATIBILITY = 70
MEDIUM_COMPATIBILITY = 40
NEW_SUGGESTION_WINDOW = timedelta(days=7)

FILTER_IDS = ("all", "high", "medium", "new")


def translate_status(status: Any) -> Any:
    """Backend enum value to display label; unknown values pass through."""
    if isinstance(status, str):
        return STATUS_LABELS.get(status, status)
    return status


def _compatibility(raw: dict[str, Any]) -> int:
    percent = coerce_number(
        pick_first(
            raw,
            [
                "compatibility",
                "compatibility_score",
                "compatibilityScore",
                "score",
                "match_score",
                "matchScore",
            ],
        )
    )
    if percent is None:
        return 0
    return int(round(min(max(percent, 0), 100)))


def transform_suggestion(raw: Any, index: int = 0) -> Suggestion | None:
    """Turn a backend interaction record into a suggestion card record."""
    if not isinstance(raw, dict):
        return None

    company = ensure_dict(
        pick_first(raw, ["company", "target_company", "targetCompany", "partner"])
    )

    suggestion_id = pick_first(
        raw,
        ["id", "interaction_id", "interactionId", "suggestion_id", "suggestionId"],
        f"suggestion-{index}",
    )
    company_name = coerce_string(
        pick_first(raw, ["company_name", "companyName"])
        or pick_first(company, ["name", "company_name", "companyName"])
        or raw.get("name")
    )
    activity = coerce_string(
        pick_first(raw, ["activity", "sector", "company_sector"])
        or pick_first(company, ["activity", "sector"])
    )
    description = coerce_string(
        pick_first(raw, ["description", "summary"])
        or pick_first(company, ["description"])
    )

    status_raw = pick_first(raw, ["status", "state", "interaction_status"], "new")

    return Suggestion(
        id=str(suggestion_id),
        company=company_name or "Entreprise",
        activity=activity or "",
        distance=coerce_number(
            pick_first(raw, ["distance", "distance_km", "distanceKm"])
        ),
        compatibility=_compatibility(raw),
        status=translate_status(status_raw),
        reasons=string_list(
            pick_first(raw, ["reasons", "match_reasons", "matchReasons", "explanations"])
        ),
        description=description or "",
        tags=string_list(pick_first(raw, ["tags", "keywords", "categories"])),
        what_they_offer=coerce_string(
            pick_first(raw, ["whatTheyOffer", "what_they_offer", "offers"])
        ),
        what_they_want=coerce_string(
            pick_first(raw, ["whatTheyWant", "what_they_want", "needs"])
        ),
        created_at=coerce_date(
            pick_first(raw, ["createdAt", "created_at", "suggested_at"])
        ),
    )


def normalize_suggestion_list(payload: Any) -> SuggestionList:
    root = payload if isinstance(payload, dict) else {}
    raw_items = pick_first(root, ["suggestions", "interactions", "items"])
    if raw_items is None:
        raw_items = unwrap_data(payload)
        if isinstance(raw_items, dict):
            raw_items = pick_first(
                raw_items, ["suggestions", "interactions", "items"], []
            )

    suggestions: list[Suggestion] = []
    for index, item in enumerate(ensure_array(raw_items)):
        suggestion = transform_suggestion(item, index)
        if suggestion is not None:
            suggestions.append(suggestion)

    total = coerce_int(pick_first(root, ["total", "count"]), len(suggestions))
    logger.debug("Normalized %s suggestions", len(suggestions))
    return SuggestionList(suggestions=suggestions, total=total)


def normalize_suggestion_stats(payload: Any) -> SuggestionStats:
    root = ensure_dict(unwrap_data(payload, ("data", "stats")))
    return SuggestionStats(
        active=coerce_int(pick_first(root, ["total", "active"])),
        new_this_week=coerce_int(pick_first(root, ["new", "newThisWeek", "new_this_week"])),
        pending=coerce_int(pick_first(root, ["high", "pending"])),
    )


def normalize_suggestion_filters(payload: Any) -> dict[str, list[FacetEntry]]:
    root = ensure_dict(unwrap_data(payload, ("data", "filters")))
    return {
        name: normalize_facet_entries(value)
        for name, value in root.items()
        if isinstance(value, (list, dict))
    }


def filter_suggestions(
    suggestions: list[Suggestion],
    filter_id: str,
    now: datetime | None = None,
) -> list[Suggestion]:
    if filter_id == "high":
        return [s for s in suggestions if s.compatibility >= HIGH_COMPATIBILITY]
    if filter_id == "medium":
        return [
            s
            for s in suggestions
            if MEDIUM_COMPATIBILITY <= s.compatibility < HIGH_COMPATIBILITY
        ]
    if filter_id == "new":
        current = now or datetime.now(timezone.utc)
        threshold = current - NEW_SUGGESTION_WINDOW
        return [
            s for s in suggestions if s.created_at and s.created_at >= threshold
        ]
    return list(suggestions)
