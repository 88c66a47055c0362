from __future__ import annotations

import math
from typing import Any

from ecoconnect_client.errors import ValidationError
from ecoconnect_client.models.schemas import FacetEntry
from ecoconnect_client.normalizers.fields import coerce_number, ensure_dict

RESOURCE_TYPES = ("production", "besoin", "dechet")


def _first_defined(source: dict[str, Any], keys: list[str], default: Any = None) -> Any:
    for key in keys:
        if source.get(key) is not None:
            return source[key]
    return default


def normalize_user(raw: Any) -> dict[str, Any] | None:
    """Keep the raw user fields and add both naming conventions for names."""
    if not isinstance(raw, dict):
        return None

    first_name = _first_defined(raw, ["firstName", "prenom", "first_name", "given_name"], "")
    last_name = _first_defined(raw, ["lastName", "nom", "last_name", "family_name"], "")
    email = _first_defined(raw, ["email", "mail", "emailAddress", "user_email"], "")

    return {
        **raw,
        "firstName": first_name,
        "lastName": last_name,
        "prenom": raw.get("prenom") if raw.get("prenom") is not None else first_name,
        "nom": raw.get("nom") if raw.get("nom") is not None else last_name,
        "email": email,
    }


def display_name(user: dict[str, Any] | None) -> str:
    if not user:
        return "Utilisateur"
    name = f"{user.get('firstName') or ''} {user.get('lastName') or ''}".strip()
    return name or "Utilisateur"


def initials(user: dict[str, Any] | None) -> str:
    first_name = (user or {}).get("firstName") or ""
    last_name = (user or {}).get("lastName") or ""
    if not first_name or not last_name:
        return "U"
    return f"{first_name[0]}{last_name[0]}".upper()


def _finite(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_coordinates(coordinates: Any) -> tuple[float, float] | None:
    if isinstance(coordinates, (list, tuple)) and len(coordinates) == 2:
        lat, lng = _finite(coordinates[0]), _finite(coordinates[1])
        if lat is not None and lng is not None:
            return lat, lng
        return None

    if isinstance(coordinates, dict):
        lat = _finite(_first_defined(coordinates, ["lat", "latitude"]))
        lng = _finite(_first_defined(coordinates, ["lng", "lon", "longitude"]))
        if lat is not None and lng is not None:
            return lat, lng
    return None


def validate_coordinates(lat: Any, lng: Any) -> tuple[float, float]:
    latitude, longitude = _finite(lat), _finite(lng)
    if latitude is None or longitude is None:
        raise ValidationError("Les coordonnées doivent être des nombres valides")
    if not -90 <= latitude <= 90:
        raise ValidationError("La latitude doit être comprise entre -90 et 90 degrés")
    if not -180 <= longitude <= 180:
        raise ValidationError(
            "La longitude doit être comprise entre -180 et 180 degrés"
        )
    return latitude, longitude


def normalize_facet_entries(raw_facets: Any) -> list[FacetEntry]:
    if not raw_facets:
        return []

    entries: list[FacetEntry] = []

    def push_entry(value_key: str, facet: Any) -> None:
        facet_dict = ensure_dict(facet)
        value = _first_defined(
            facet_dict, ["value", "slug", "code", "name", "id"], value_key
        )
        if not value and value != 0:
            return
        label = _first_defined(facet_dict, ["label", "name"], str(value))
        count = facet_dict.get("count")
        if isinstance(count, bool) or not isinstance(count, (int, float)):
            count = coerce_number(_first_defined(facet_dict, ["total", "valueCount"]))
        entries.append(FacetEntry(value=str(value), label=str(label), count=count))

    if isinstance(raw_facets, list):
        for index, facet in enumerate(raw_facets):
            if isinstance(facet, str):
                entries.append(FacetEntry(value=facet, label=facet))
                continue
            push_entry(str(index), facet)
    elif isinstance(raw_facets, dict):
        for key, facet_value in raw_facets.items():
            if isinstance(facet_value, dict):
                push_entry(key, facet_value)
            else:
                entries.append(
                    FacetEntry(value=key, label=key, count=coerce_number(facet_value))
                )
    return entries


def normalize_company_profile(payload: Any) -> dict[str, Any] | None:
    """Reshape `{company: {...}}` into the sections the profile page edits."""
    company = ensure_dict(ensure_dict(payload).get("company") or payload)
    if not company:
        return None
    return {
        "general": {
            "nom_entreprise": company.get("name"),
            "secteur": company.get("sector"),
            "description": company.get("description"),
            "phone": company.get("phone"),
            "email": company.get("email"),
            "website": company.get("website"),
            "siret": company.get("siret"),
        },
        "productions": company.get("productions") or [],
        "besoins": company.get("besoins") or [],
        "dechets": company.get("dechets") or [],
        "geolocation": {
            "address": company.get("address"),
            "latitude": company.get("latitude"),
            "longitude": company.get("longitude"),
        },
    }


def transform_resource_data(data: dict[str, Any], resource_type: str) -> dict[str, Any]:
    base = {
        "name": data.get("name"),
        "category": data.get("category"),
        "unit_measure": data.get("quantity") or data.get("unit_measure"),
        "description": data.get("description"),
        "status": data.get("status") or "active",
    }
    if resource_type == "dechet":
        traitement = data.get("traitement")
        base["is_been"] = traitement if traitement is not None else True
    return base


def transform_company_general_data(general: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": general.get("nom_entreprise"),
        "sector": general.get("secteur"),
        "description": general.get("description"),
    }


def transform_geolocation_data(geo: dict[str, Any]) -> dict[str, Any]:
    latitude, longitude = validate_coordinates(geo.get("latitude"), geo.get("longitude"))
    return {
        "address": geo.get("address"),
        "latitude": latitude,
        "longitude": longitude,
    }
