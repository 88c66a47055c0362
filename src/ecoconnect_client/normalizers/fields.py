"""
Field extraction helpers shared by every normalizer.

Backend payloads vary between snake_case and camelCase keys and are sometimes
wrapped in `data` / `result` / `items` envelopes. The helpers below try an
ordered list of candidate paths and fall back to a default; none of them
raises on unexpected input.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Sequence, Union

from ecoconnect_client.models.schemas import Pagination

logger = logging.getLogger(__name__)

Path = Union[str, Sequence[str], Callable[[Any], Any]]

# Epoch values above this are milliseconds, below it seconds.
EPOCH_MS_THRESHOLD = 10_000_000_000

_WHITESPACE_RE = re.compile(r"\s")


def get_nested(source: Any, path: str | Sequence[str]) -> Any:
    if not isinstance(source, dict):
        return None
    segments = path.split(".") if isinstance(path, str) else list(path)
    current: Any = source
    for segment in segments:
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        else:
            return None
    return current


def pick_first(source: Any, paths: Iterable[Path], default: Any = None) -> Any:
    """Return the first candidate value that is neither None nor an empty string."""
    if source is None:
        return default
    for path in paths:
        value = path(source) if callable(path) else get_nested(source, path)
        if value is not None and value != "":
            return value
    return default


def unwrap_data(
    payload: Any, keys: Sequence[str] = ("data", "result", "items")
) -> Any:
    if not payload:
        return None
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            if key in payload:
                return unwrap_data(payload[key], keys)
    return payload


def ensure_array(value: Any) -> list[Any]:
    if not value:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return list(value.values())
    return []


def ensure_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def coerce_number(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        normalized = _WHITESPACE_RE.sub("", value)
        normalized = normalized.replace("%", "").replace("+", "")
        normalized = normalized.replace(",", ".", 1)
        if not normalized:
            return None
        try:
            parsed = float(normalized)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    if isinstance(value, dict):
        for key in ("value", "count", "total", "amount"):
            if key in value:
                return coerce_number(value[key])
    return None


def coerce_percent(value: Any) -> float | None:
    """Numbers with magnitude <= 1 are ratios and become percentages."""
    numeric = coerce_number(value)
    if numeric is None:
        return None
    if abs(numeric) <= 1:
        return round(numeric * 100, 2)
    return round(numeric, 2)


def coerce_string(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, dict):
        for key in ("label", "name", "title"):
            if key in value:
                return coerce_string(value[key])
        if "value" in value and not isinstance(value["value"], (dict, list)):
            return coerce_string(value["value"])
    return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_date(value: Any) -> datetime | None:
    """Epoch seconds, epoch milliseconds, ISO strings or datetimes; else None."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        seconds = value / 1000 if value > EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        if cleaned.endswith("Z"):
            cleaned = cleaned[:-1] + "+00:00"
        try:
            return _as_utc(datetime.fromisoformat(cleaned))
        except ValueError:
            logger.debug("Unparseable date value: %r", value)
            return None
    return None


def coerce_int(value: Any, default: int = 0) -> int:
    numeric = coerce_number(value)
    if numeric is None:
        return default
    return int(numeric)


def string_list(value: Any) -> list[str]:
    """Lists of strings or of {label|name|text} objects, or a ;-separated string."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(";") if part.strip()]
    items: list[str] = []
    for entry in ensure_array(value):
        if isinstance(entry, dict):
            text = coerce_string(
                pick_first(entry, ["label", "name", "text", "reason", "value"])
            )
        else:
            text = coerce_string(entry)
        if text and text.strip():
            items.append(text.strip())
    return items


def extract_object(payload: Any) -> dict[str, Any]:
    return ensure_dict(unwrap_data(payload, ("data", "result")))


def extract_array(payload: Any, keys: Sequence[str] = ()) -> list[Any]:
    """Find the list in a payload: preferred keys first, then any list, nested."""
    unwrapped = unwrap_data(payload, ("data", "result"))
    if isinstance(unwrapped, list):
        return unwrapped

    visited: set[int] = set()

    def scan(obj: Any) -> list[Any]:
        if not isinstance(obj, dict) or id(obj) in visited:
            return []
        visited.add(id(obj))

        for key in keys:
            value = obj.get(key)
            if isinstance(value, list):
                return value
            if isinstance(value, dict):
                nested = scan(value)
                if nested:
                    return nested

        for value in obj.values():
            if isinstance(value, list):
                return value

        for value in obj.values():
            if isinstance(value, dict):
                nested = scan(value)
                if nested:
                    return nested
        return []

    return scan(unwrapped)


def extract_number(payload: Any, keys: Sequence[str]) -> float:
    obj = extract_object(payload)
    for key in keys:
        value = obj.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return float(value)
            except ValueError:
                continue
    return 0


def parse_pagination(root: Any, item_count: int) -> Pagination:
    root = ensure_dict(root)
    meta = (
        root.get("meta")
        or root.get("pagination")
        or root.get("paging")
        or {
            "current_page": root.get("page"),
            "per_page": root.get("perPage"),
            "total_pages": root.get("totalPages"),
            "total": root.get("total"),
        }
    )

    page = coerce_number(
        pick_first(
            meta,
            ["current_page", "currentPage", "page", "pageNumber", "page_index"],
        )
    )
    if page is None:
        page = 1
    per_page = coerce_number(
        pick_first(meta, ["per_page", "perPage", "limit", "pageSize", "page_size"])
    )
    if per_page is None:
        per_page = item_count
    total_items = coerce_number(pick_first(meta, ["total", "totalItems", "count"]))
    if total_items is None:
        total_items = page * per_page if per_page else item_count
    total_pages = coerce_number(
        pick_first(
            meta,
            ["total_pages", "totalPages", "last_page", "pageCount", "pages"],
        )
    )
    if total_pages is None:
        total_pages = math.ceil(total_items / per_page) if per_page else 1

    return Pagination(
        page=page,
        per_page=per_page,
        total_items=total_items,
        total_pages=total_pages,
    )
