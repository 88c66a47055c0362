"""Company profile endpoints; sections that do not exist yet read as empty."""

import logging
from typing import Any

from ecoconnect_client.errors import ApiError, is_not_found
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.normalizers.fields import ensure_dict
from ecoconnect_client.normalizers.profile import (
    RESOURCE_TYPES,
    normalize_company_profile,
    transform_company_general_data,
    transform_geolocation_data,
    transform_resource_data,
)

logger = logging.getLogger(__name__)

# resource type -> backend collection segment
RESOURCE_PATHS = {
    "production": "productions",
    "besoin": "besoins",
    "dechet": "dechets",
}


def _collection(resource_type: str) -> str:
    if resource_type not in RESOURCE_TYPES:
        raise ValueError(f"Unknown resource type: {resource_type}")
    return RESOURCE_PATHS[resource_type]


def get_company_profile(client: ApiClient) -> dict[str, Any] | None:
    try:
        payload = client.get("/company/profile")
    except ApiError as exc:
        if is_not_found(exc):
            return None
        logger.error("Error fetching company profile: %s", exc)
        raise
    return normalize_company_profile(payload)


def create_company(client: ApiClient, company: dict[str, Any]) -> Any:
    cleaned = {key: value for key, value in company.items() if value not in (None, "")}
    return client.post("/company", json=cleaned)


def update_company_general(client: ApiClient, general: dict[str, Any]) -> Any:
    return client.put("/company/general", json=transform_company_general_data(general))


def get_resources(client: ApiClient, resource_type: str) -> list[Any]:
    collection = _collection(resource_type)
    try:
        payload = client.get(f"/company/{collection}")
    except ApiError as exc:
        if is_not_found(exc):
            return []
        raise
    items = ensure_dict(payload).get(collection)
    return items if isinstance(items, list) else []


def add_resource(client: ApiClient, resource_type: str, data: dict[str, Any]) -> Any:
    collection = _collection(resource_type)
    return client.post(
        f"/company/{collection}", json=transform_resource_data(data, resource_type)
    )


def update_resource(
    client: ApiClient, resource_type: str, resource_id: str, data: dict[str, Any]
) -> Any:
    collection = _collection(resource_type)
    return client.put(
        f"/company/{collection}/{resource_id}",
        json=transform_resource_data(data, resource_type),
    )


def delete_resource(client: ApiClient, resource_type: str, resource_id: str) -> Any:
    collection = _collection(resource_type)
    return client.delete(f"/company/{collection}/{resource_id}")


def get_geolocation(client: ApiClient) -> dict[str, Any] | None:
    try:
        payload = client.get("/company/geolocation")
    except ApiError as exc:
        if is_not_found(exc):
            return None
        raise
    return ensure_dict(payload).get("geolocation") or None


def update_geolocation(client: ApiClient, geo: dict[str, Any]) -> Any:
    payload = client.put("/company/geolocation", json=transform_geolocation_data(geo))
    return ensure_dict(payload).get("geolocation")
