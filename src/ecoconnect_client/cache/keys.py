"""
Semantic query keys.

Keys are tuples; invalidation, cancellation and removal match by prefix, so
`SUGGESTIONS` covers every suggestions entry and `suggestions_list()` only the
list. Parameter dicts are frozen into sorted item tuples so keys stay hashable.
"""

from __future__ import annotations

from typing import Any, Hashable, Tuple

QueryKey = Tuple[Hashable, ...]


def freeze(params: Any) -> Hashable:
    if isinstance(params, dict):
        return tuple(
            sorted((str(key), freeze(value)) for key, value in params.items() if value is not None)
        )
    if isinstance(params, (list, tuple, set)):
        return tuple(freeze(value) for value in params)
    return params


def matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == tuple(prefix)


# Suggestions
SUGGESTIONS: QueryKey = ("suggestions",)


def suggestions_list(filters: dict[str, Any] | None = None) -> QueryKey:
    if filters:
        return SUGGESTIONS + ("list", freeze(filters))
    return SUGGESTIONS + ("list",)


def suggestions_stats() -> QueryKey:
    return SUGGESTIONS + ("stats",)


def suggestions_filters() -> QueryKey:
    return SUGGESTIONS + ("filters",)


# Auth / account
AUTH: QueryKey = ("auth",)


def auth_user() -> QueryKey:
    return AUTH + ("user",)


def user_avatar() -> QueryKey:
    return AUTH + ("avatar",)


# Dashboard
DASHBOARD: QueryKey = ("dashboard",)


def dashboard_stats() -> QueryKey:
    return DASHBOARD + ("stats",)


def dashboard_companies() -> QueryKey:
    return DASHBOARD + ("companies",)


def dashboard_completion() -> QueryKey:
    return DASHBOARD + ("completion",)


# Company profile
COMPANY: QueryKey = ("company",)


def company_profile() -> QueryKey:
    return COMPANY + ("profile",)


def company_section(section: str) -> QueryKey:
    """One of productions, besoins, dechets, geolocation, general."""
    return COMPANY + (section,)


# Assistant
ASSISTANT: QueryKey = ("assistant",)


def assistant_templates() -> QueryKey:
    return ASSISTANT + ("templates",)


def assistant_conversations() -> QueryKey:
    return ASSISTANT + ("conversations",)


def assistant_messages(conversation_id: str) -> QueryKey:
    return ASSISTANT + ("messages", str(conversation_id))


# Import
IMPORT: QueryKey = ("import",)


def import_stats() -> QueryKey:
    return IMPORT + ("stats",)


def import_history(limit: int | None = None) -> QueryKey:
    if limit is None:
        return IMPORT + ("history",)
    return IMPORT + ("history", limit)


def import_analysis(kind: str, analysis_id: str) -> QueryKey:
    """kind: predictions, partnerships, optimizations or impact."""
    return IMPORT + (kind, str(analysis_id))


def import_profile_summary() -> QueryKey:
    return IMPORT + ("profile-summary",)


# Company messaging
COMPANY_MESSAGES: QueryKey = ("company-messages",)


def company_conversations() -> QueryKey:
    return COMPANY_MESSAGES + ("list",)


def company_conversation(conversation_id: str) -> QueryKey:
    return COMPANY_MESSAGES + ("conversation", str(conversation_id))


def company_conversation_messages(conversation_id: str) -> QueryKey:
    return company_conversation(conversation_id) + ("messages",)


# Admin
ADMIN: QueryKey = ("admin-dashboard",)


def admin_metrics() -> QueryKey:
    return ADMIN + ("metrics",)


def admin_companies(params: dict[str, Any] | None = None) -> QueryKey:
    return ADMIN + ("companies", freeze(params or {}))


def admin_system_stats() -> QueryKey:
    return ADMIN + ("system-stats",)


# Billing
BILLING: QueryKey = ("billing",)


def billing_plans() -> QueryKey:
    return BILLING + ("plans",)


# Directory
DIRECTORY: QueryKey = ("directory",)


def directory(params: dict[str, Any] | None = None) -> QueryKey:
    return DIRECTORY + (freeze(params or {}),)


COMPANY_PUBLIC: QueryKey = ("company-public",)


def company_public(company_id: str) -> QueryKey:
    return COMPANY_PUBLIC + (str(company_id),)
