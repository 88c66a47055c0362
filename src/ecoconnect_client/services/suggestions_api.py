from typing import Any

from ecoconnect_client.http.client import ApiClient


def fetch_suggestions(client: ApiClient, filters: dict[str, Any] | None = None) -> Any:
    return client.get("/suggestions", params=filters)


def fetch_suggestions_stats(client: ApiClient) -> Any:
    return client.get("/suggestions/stats")


def fetch_suggestions_filters(client: ApiClient) -> Any:
    return client.get("/suggestions/filters")


def ignore_suggestion(client: ApiClient, suggestion_id: str) -> Any:
    return client.post(f"/suggestions/{suggestion_id}/ignore")


def save_suggestion(client: ApiClient, suggestion_id: str) -> Any:
    return client.post(f"/suggestions/{suggestion_id}/save")


def contact_suggestion(
    client: ApiClient,
    suggestion_id: str,
    message: str | None = None,
    preferred_contact_method: str | None = None,
) -> Any:
    return client.post(
        f"/suggestions/{suggestion_id}/contact",
        json={
            "message": message,
            "preferredContactMethod": preferred_contact_method,
        },
    )
