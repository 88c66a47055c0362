"""
Company directory listing and public company profiles.

The listing answers `{success, data: {items|companies, total, facets}}` or the
bare inner object; facets are `{sectors, wasteTypes}` in any of the shapes
`normalize_facet_entries` accepts.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ecoconnect_client.models.schemas import (
    DirectoryCompany,
    DirectoryPage,
    FacetEntry,
    PublicCompany,
    PublicCompanyStats,
    PublicResource,
)
from ecoconnect_client.normalizers.fields import (
    coerce_number,
    coerce_string,
    ensure_dict,
    parse_pagination,
    pick_first,
)
from ecoconnect_client.normalizers.profile import normalize_coordinates, normalize_facet_entries

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISTANCE = 15
DEFAULT_PAGE_SIZE = 12

_ID_KEYS = ["id", "company_id", "companyId", "id_company", "uuid", "slug"]


def _to_list(value: Any) -> list[Any]:
    if not value:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        return list(value.values())
    return []


def _text_list(value: Any) -> list[str]:
    return [text for text in (coerce_string(item) for item in _to_list(value)) if text]


def _coordinates(raw: dict[str, Any]) -> tuple[float, float] | None:
    coordinates = normalize_coordinates(raw.get("coordinates"))
    if coordinates is not None:
        return coordinates
    return normalize_coordinates(
        {
            "lat": pick_first(raw, ["latitude", "lat"]),
            "lng": pick_first(raw, ["longitude", "lng", "lon"]),
        }
    )


def selection_param(selected: Iterable[str] | None, available: Iterable[str] = ()) -> str | None:
    """Comma-joined sorted selection; None when empty or when every option is selected."""
    chosen = {str(value) for value in selected or () if str(value)}
    if not chosen:
        return None
    options = {str(value) for value in available}
    if options and chosen == options:
        return None
    return ",".join(sorted(chosen))


def build_directory_params(
    search: str | None = None,
    sectors: str | None = None,
    waste_types: str | None = None,
    max_distance: float | None = DEFAULT_MAX_DISTANCE,
    page: int | None = 1,
    limit: int | None = DEFAULT_PAGE_SIZE,
) -> dict[str, Any]:
    params: dict[str, Any] = {}
    term = (search or "").strip()
    if term:
        params["search"] = term
    if sectors:
        params["sectors"] = sectors
    if waste_types:
        params["wasteTypes"] = waste_types
    # zero means "no constraint", like an absent value
    if max_distance:
        params["maxDistance"] = max_distance
    if page:
        params["page"] = page
    if limit:
        params["limit"] = limit
    return params


def normalize_directory_company(raw: Any) -> DirectoryCompany | None:
    if not isinstance(raw, dict) or not raw:
        return None
    company_id = pick_first(raw, _ID_KEYS)
    return DirectoryCompany(
        id=str(company_id) if company_id is not None else None,
        name=coerce_string(pick_first(raw, ["name", "company_name", "companyName"]))
        or "Entreprise",
        description=coerce_string(pick_first(raw, ["description", "about"])) or "",
        sector=coerce_string(pick_first(raw, ["sector", "industry", "secteur"])),
        distance=coerce_number(pick_first(raw, ["distance", "distance_km", "distanceKm"])),
        tags=_text_list(pick_first(raw, ["tags", "labels", "keywords"])),
        offer=coerce_string(pick_first(raw, ["offer", "offers", "whatTheyOffer"])),
        demand=coerce_string(pick_first(raw, ["demand", "demands", "whatTheyWant"])),
        coordinates=_coordinates(raw),
    )


def normalize_directory_payload(payload: Any) -> DirectoryPage:
    root = ensure_dict(payload)
    if root.get("success") and isinstance(root.get("data"), dict):
        root = root["data"]

    raw_items = root.get("items")
    if raw_items is None:
        raw_items = root.get("companies")
    raw_items = raw_items if isinstance(raw_items, list) else []

    companies = [
        company
        for item in raw_items
        if (company := normalize_directory_company(item)) is not None
    ]
    if len(companies) != len(raw_items):
        logger.debug("Dropped %s malformed directory entries", len(raw_items) - len(companies))

    total = coerce_number(root.get("total"))
    facets = ensure_dict(root.get("facets"))
    return DirectoryPage(
        companies=companies,
        total=len(companies) if total is None else total,
        pagination=parse_pagination(root, len(companies)),
        sectors=normalize_facet_entries(facets.get("sectors")),
        waste_types=normalize_facet_entries(pick_first(facets, ["wasteTypes", "waste_types"])),
    )


def facet_values(entries: list[FacetEntry]) -> list[str]:
    return [entry.value for entry in entries]


def normalize_resource_items(raw_items: Any) -> list[PublicResource]:
    items: list[PublicResource] = []
    for index, item in enumerate(_to_list(raw_items)):
        if item is None:
            continue
        if isinstance(item, str):
            items.append(PublicResource(id=index, title=item))
        elif isinstance(item, dict):
            items.append(
                PublicResource(
                    id=item["id"] if item.get("id") is not None else index,
                    title=coerce_string(pick_first(item, ["name", "label", "title"]))
                    or "Ressource",
                    details=coerce_string(pick_first(item, ["description", "notes", "details"])),
                    category=coerce_string(pick_first(item, ["category", "type"])),
                    quantity=coerce_string(pick_first(item, ["quantity", "amount"])),
                    status=coerce_string(item.get("status")),
                )
            )
    return items


def normalize_public_company(data: Any, fallback_id: str | None = None) -> PublicCompany | None:
    """Public profile page record; missing texts get the page's placeholders."""
    raw = ensure_dict(data)
    if isinstance(raw.get("company"), dict):
        raw = raw["company"]
    elif raw.get("success") and isinstance(raw.get("data"), dict):
        raw = raw["data"]
    if not raw:
        return None

    company_id = pick_first(raw, _ID_KEYS, fallback_id)
    return PublicCompany(
        id=str(company_id) if company_id is not None else None,
        name=coerce_string(pick_first(raw, ["name", "company_name"])) or "Entreprise",
        description=coerce_string(pick_first(raw, ["description", "about"]))
        or "Aucune description disponible pour cette entreprise.",
        sector=coerce_string(pick_first(raw, ["sector", "industry"])) or "Non renseigné",
        address=coerce_string(pick_first(raw, ["address", "full_address"])),
        postal_code=coerce_string(pick_first(raw, ["postal_code", "zip"])),
        city=coerce_string(pick_first(raw, ["city", "town"])),
        phone=coerce_string(pick_first(raw, ["phone", "phone_number"])),
        email=coerce_string(pick_first(raw, ["email", "contact_email"])),
        website=coerce_string(pick_first(raw, ["website", "site"])),
        tags=_text_list(pick_first(raw, ["tags", "labels", "keywords"])),
        coordinates=_coordinates(raw),
        productions=normalize_resource_items(
            pick_first(raw, ["productions", "offers", "production"])
        ),
        needs=normalize_resource_items(pick_first(raw, ["besoins", "needs", "demands"])),
        wastes=normalize_resource_items(pick_first(raw, ["dechets", "waste", "wastes"])),
        stats=PublicCompanyStats(
            synergies=coerce_number(
                pick_first(raw, ["activeSynergies", "active_matches", "synergies"])
            )
            or 0,
            completed=coerce_number(
                pick_first(raw, ["completedSynergies", "completed_matches", "completed"])
            )
            or 0,
            employees=coerce_number(pick_first(raw, ["employees", "workforce"])),
        ),
    )
