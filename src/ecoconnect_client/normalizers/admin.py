from __future__ import annotations

import re
from typing import Any

from ecoconnect_client.models.schemas import (
    AdminCompaniesPage,
    AdminCompanyRow,
    AdminMetrics,
    DistributionEntry,
    FacetEntry,
    MetricBlock,
    StatsCard,
    StatusInfo,
    SystemStats,
)
from ecoconnect_client.normalizers.fields import (
    coerce_date,
    coerce_number,
    coerce_percent,
    coerce_string,
    ensure_array,
    ensure_dict,
    parse_pagination,
    pick_first,
)

_STATUS_SEPARATORS_RE = re.compile(r"[_\s-]+")

_STATUS_TABLE = (
    ({"active", "actif", "approved", "verified", "enabled"}, "Actif", "success"),
    (
        {"pending", "en attente", "moderating", "awaiting approval", "waiting", "review"},
        "En attente",
        "pending",
    ),
    (
        {
            "inactive",
            "inactif",
            "disabled",
            "désactivé",
            "archived",
            "suspended",
            "suspendu",
        },
        "Inactif",
        "inactive",
    ),
    ({"rejected", "refusé", "blocked", "bloqué"}, "Refusé", "inactive"),
)

_TREND_KEYWORDS = {
    "positive": {"positive", "increase", "up", "growth", "success"},
    "negative": {"negative", "decrease", "down", "drop", "decline"},
    "warning": {"warning", "alert", "attention", "pending"},
    "neutral": {"neutral", "stable", "none"},
}

_MINUS = "\u2212"
_THIN_SPACE = "\u202f"


def normalize_status(status: Any) -> StatusInfo:
    """Map a free-form moderation status onto a display label and tone."""
    if status is None or status == "" or status is False:
        return StatusInfo(label="Inconnu", tone="inactive", value=None)

    cleaned = _STATUS_SEPARATORS_RE.sub(" ", str(status).lower())
    for keywords, label, tone in _STATUS_TABLE:
        if cleaned in keywords:
            return StatusInfo(label=label, tone=tone, value=status)
    return StatusInfo(label=str(status), tone="inactive", value=status)


def determine_trend_type(
    trend: Any,
    numeric: float | None = None,
    percent: float | None = None,
) -> str:
    if trend:
        normalized = str(trend).lower()
        for trend_type, keywords in _TREND_KEYWORDS.items():
            if normalized in keywords:
                return trend_type

    reference = percent if percent is not None else numeric
    if reference is None or reference == 0:
        return "neutral"
    return "positive" if reference > 0 else "negative"


def format_number_fr(value: float) -> str:
    """fr-FR rendering with at most one decimal digit."""
    rounded = round(float(value), 1)
    integer_part, _, decimals = f"{abs(rounded):,.1f}".partition(".")
    integer_part = integer_part.replace(",", _THIN_SPACE)
    text = integer_part if decimals == "0" else f"{integer_part},{decimals}"
    return f"-{text}" if rounded < 0 else text


def format_change_label(
    label: str | None = None,
    percent: float | None = None,
    numeric: float | None = None,
    unit: str = "",
    period: str | None = None,
) -> str:
    if label:
        return label
    if percent is None and numeric is None:
        return f"Stable {period}" if period else "Stable"

    value = percent if percent is not None else numeric
    applied_unit = "%" if percent is not None else (unit or "")
    formatted = format_number_fr(value)
    if value < 0:
        final_value = f"{_MINUS}{formatted.lstrip('-')}"
    elif value > 0:
        final_value = f"+{formatted}"
    else:
        final_value = formatted

    if period:
        unit_part = f"{applied_unit} " if applied_unit else ""
        return f"{final_value}{unit_part}{period}"
    return f"{final_value}{applied_unit}"


def _metric_block(
    raw: Any,
    subtitle: str,
    period: str,
    unit: str = "",
    prefer_percent: bool = False,
    percentage_value: bool = False,
    trend_override: str | None = None,
) -> MetricBlock:
    raw = ensure_dict(raw)
    block_subtitle = pick_first(raw, ["subtitle", "description", "label"], subtitle)
    block_period = pick_first(
        raw, ["period", "window", "rangeLabel", "comparingPeriod"], period
    )
    change_label = coerce_string(
        pick_first(
            raw,
            ["changeLabel", "deltaLabel", "trendLabel", "variationLabel", "changeText"],
        )
    )
    change_numeric = coerce_number(
        pick_first(
            raw,
            [
                "change",
                "delta",
                "difference",
                "variation",
                "changeValue",
                "trendValue",
                "change_count",
            ],
        )
    )
    change_percent = coerce_percent(
        pick_first(
            raw,
            [
                "changePercent",
                "deltaPercent",
                "variationPercent",
                "growth",
                "growthRate",
                "trendPercent",
                "change_rate",
            ],
        )
    )
    trend_type = determine_trend_type(
        pick_first(
            raw, ["changeType", "trend", "trendType", "direction", "status", "tone"]
        ),
        numeric=change_numeric,
        percent=change_percent,
    )
    block_unit = coerce_string(pick_first(raw, ["unit", "suffix", "unitLabel"])) or unit

    value = coerce_number(
        pick_first(
            raw,
            [
                "total",
                "count",
                "value",
                "current",
                "amount",
                "totalCount",
                "currentValue",
            ],
        )
    )
    if percentage_value and value is not None and value <= 1:
        value = round(value * 100, 2)

    return MetricBlock(
        value=value,
        subtitle=coerce_string(block_subtitle),
        period=coerce_string(block_period),
        change_label=format_change_label(
            label=change_label,
            percent=change_percent if prefer_percent else None,
            numeric=None if prefer_percent else change_numeric,
            unit=block_unit,
            period=coerce_string(block_period),
        ),
        change_numeric=change_numeric,
        change_percent=change_percent,
        change_type=trend_override or trend_type,
    )


def _first_block(root: dict[str, Any], keys: list[str], nested: list[str]) -> Any:
    for key in keys:
        if root.get(key) is not None:
            return root[key]
    return pick_first(root, nested, {})


def normalize_metrics_payload(payload: Any) -> AdminMetrics:
    payload = ensure_dict(payload)
    root = ensure_dict(payload.get("metrics") or payload.get("data") or payload)

    companies = _first_block(
        root, ["companies", "company"], ["overview.companies", "totals.companies"]
    )
    connections = _first_block(
        root, ["connections", "network"], ["overview.connections", "totals.connections"]
    )
    activity = _first_block(
        root, ["activity", "profiles", "profileCompletion"], ["overview.activity"]
    )
    moderation = _first_block(
        root, ["moderation", "moderationQueue"], ["overview.moderation"]
    )

    pending = coerce_number(pick_first(moderation, ["pending", "total", "count"])) or 0

    return AdminMetrics(
        companies=_metric_block(
            companies, "Total inscrites", "ce mois", prefer_percent=True
        ),
        connections=_metric_block(connections, "Mises en relation", "cette semaine"),
        activity=_metric_block(
            activity,
            "Profils complétés",
            "ce mois",
            unit="%",
            prefer_percent=True,
            percentage_value=True,
        ),
        moderation=_metric_block(
            moderation,
            "En attente",
            "à traiter",
            trend_override="warning" if pending > 0 else None,
        ),
    )


def normalize_distribution(value: Any) -> list[DistributionEntry]:
    entries: list[DistributionEntry] = []
    for entry in ensure_array(value):
        if entry is None:
            continue
        if isinstance(entry, str):
            entries.append(DistributionEntry(label=entry, percent=None, value=None))
        elif isinstance(entry, (int, float)) and not isinstance(entry, bool):
            entries.append(DistributionEntry(label=None, percent=entry, value=entry))
        elif isinstance(entry, dict):
            entries.append(
                DistributionEntry(
                    label=coerce_string(
                        pick_first(entry, ["label", "name", "sector", "title"])
                    ),
                    percent=coerce_percent(
                        pick_first(entry, ["percent", "percentage", "ratio", "share"])
                    ),
                    value=coerce_number(
                        pick_first(
                            entry, ["value", "count", "total", "amount", "quantity"]
                        )
                    ),
                )
            )
    return entries


def _score(entry: DistributionEntry) -> float:
    if entry.percent is not None:
        return entry.percent
    return entry.value or 0


def _trend_card(
    key: str,
    title: str,
    block: Any,
    value_keys: list[str],
    percent_keys: list[str],
    period: str,
) -> StatsCard:
    block = ensure_dict(block)
    change = coerce_percent(pick_first(block, percent_keys))
    label = format_change_label(
        label=coerce_string(
            pick_first(block, ["changeLabel", "deltaLabel", "trendLabel"])
        ),
        percent=change,
        unit="%",
        period=coerce_string(pick_first(block, ["period", "window", "rangeLabel"]))
        or period,
    )
    return StatsCard(
        key=key,
        title=title,
        value=coerce_number(pick_first(block, value_keys)),
        change_label=label,
        change_type=determine_trend_type(
            pick_first(block, ["trend", "changeType", "direction", "status"]),
            percent=change,
        ),
    )


def normalize_system_stats_payload(payload: Any) -> SystemStats:
    payload = ensure_dict(payload)
    root = ensure_dict(payload.get("stats") or payload.get("data") or payload)

    registrations = _first_block(
        root, ["registrations", "signups", "enrollments"], ["dashboard.registrations"]
    )
    sectors = _first_block(
        root, ["sectors", "sectorDistribution"], ["dashboard.sectors"]
    )
    connections = _first_block(
        root, ["connections", "network", "matches"], ["dashboard.connections"]
    )

    distribution = normalize_distribution(
        pick_first(sectors, ["distribution", "values", "data", "sectors"])
    )
    top_sector = max(distribution, key=_score) if distribution else None

    if top_sector is not None:
        sector_value: float | None = _score(top_sector)
        sector_label = f"{format_number_fr(sector_value)}% du total"
    else:
        sector_value = None
        sector_label = "Aucune donnée secteur"

    cards = [
        _trend_card(
            "registrations",
            "Inscriptions par mois",
            registrations,
            ["thisMonth", "current", "value", "total", "count"],
            ["changePercent", "deltaPercent", "variationPercent", "growth"],
            "vs mois dernier",
        ),
        StatsCard(
            key="sectors",
            title="Répartition par secteur",
            value=sector_value,
            change_label=sector_label,
            change_type="neutral",
            value_label=top_sector.label if top_sector else None,
        ),
        _trend_card(
            "connections",
            "Évolution des connexions",
            connections,
            ["total", "thisMonth", "current", "value", "count"],
            ["changePercent", "deltaPercent", "growth", "trendPercent"],
            "sur 30 jours",
        ),
    ]
    return SystemStats(cards=cards, sector_distribution=distribution)


def normalize_options(options: Any) -> list[FacetEntry]:
    """Deduplicated value/label options from strings or option objects."""
    seen: dict[str, FacetEntry] = {}
    for option in ensure_array(options):
        if isinstance(option, str):
            seen.setdefault(option, FacetEntry(value=option, label=option))
            continue
        if not isinstance(option, dict):
            continue
        raw_value = pick_first(option, ["value", "id", "slug", "code", "name", "label"])
        if not raw_value:
            continue
        value = str(raw_value)
        label = pick_first(option, ["label", "name", "title", "display"], value)
        seen.setdefault(value, FacetEntry(value=value, label=str(label)))
    return list(seen.values())


def map_company(raw: Any) -> AdminCompanyRow:
    raw = ensure_dict(raw)
    company_id = pick_first(
        raw, ["id", "company_id", "companyId", "uuid", "id_company", "identifier"]
    )
    status = normalize_status(
        pick_first(
            raw,
            ["status", "state", "company_status", "moderation_status", "approvalStatus"],
            "unknown",
        )
    )
    created_raw = pick_first(
        raw,
        ["createdAt", "created_at", "registered_at", "registration_date", "joined_at"],
    )
    activity_raw = pick_first(
        raw,
        [
            "lastActivityAt",
            "last_activity_at",
            "last_seen_at",
            "lastInteractionAt",
            "last_active_at",
        ],
    )
    created_at = coerce_date(created_raw)
    last_activity_at = coerce_date(activity_raw)

    return AdminCompanyRow(
        id=str(company_id) if company_id else None,
        name=coerce_string(
            pick_first(
                raw,
                ["name", "company_name", "companyName", "displayName", "raison_sociale"],
            )
        )
        or "Entreprise",
        email=coerce_string(
            pick_first(raw, ["email", "contact_email", "company_email", "primaryEmail"])
        ),
        sector=coerce_string(
            pick_first(
                raw, ["sector", "industry", "sector_name", "company_sector", "activity"]
            )
        ),
        status=status.label,
        status_tone=status.tone,
        raw_status=status.value,
        created_at=created_at,
        last_activity_at=last_activity_at,
        # unparseable date strings are kept for display as-is
        created_at_label=created_raw
        if created_at is None and isinstance(created_raw, str)
        else None,
        last_activity_label=activity_raw
        if last_activity_at is None and isinstance(activity_raw, str)
        else None,
        phone=coerce_string(
            pick_first(raw, ["phone", "phone_number", "contact_phone"])
        ),
    )


def normalize_companies_payload(payload: Any) -> AdminCompaniesPage:
    payload = ensure_dict(payload)
    data = payload.get("data")
    root = data if isinstance(data, dict) else payload
    items = pick_first(
        root, ["items", "companies", "results", "data", "payload.items", "payload.data"]
    )
    if not isinstance(items, list):
        items = []

    filters = ensure_dict(root.get("filters"))
    statuses = pick_first(filters, ["statuses", "status"]) or pick_first(
        root, ["availableStatuses", "statusOptions"]
    )
    sectors = pick_first(filters, ["sectors", "sector"]) or pick_first(
        root, ["availableSectors", "sectorOptions"]
    )

    return AdminCompaniesPage(
        items=[map_company(item) for item in items],
        pagination=parse_pagination(root, len(items)),
        statuses=normalize_options(statuses),
        sectors=normalize_options(sectors),
    )
