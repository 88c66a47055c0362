from __future__ import annotations

from typing import Any

from ecoconnect_client.models.schemas import (
    FinancialImpact,
    MappingResult,
    ProfileSummary,
    SyncResult,
)
from ecoconnect_client.normalizers.fields import (
    coerce_number,
    extract_array,
    extract_number,
    extract_object,
    get_nested,
)

HISTORY_KEYS = ("history", "items", "records")
PREDICTION_KEYS = ("predictions", "items")
PARTNERSHIP_KEYS = ("partnerships", "items", "suggestions")
OPTIMIZATION_KEYS = ("optimizations", "items", "recommendations")

_PRODUCTION_KEYS = ("productions", "productionsCount", "productionCount")
_WASTE_KEYS = ("wastes", "wastesCount", "wasteCount")
_NEED_KEYS = ("needs", "needsCount", "needCount")
_ANALYSIS_KEYS = ("analyses", "analysisCount", "analysesCount")
_ANALYZED_KEYS = ("itemsAnalyzed", "items", "rows")


def normalize_history(payload: Any) -> list[Any]:
    return extract_array(payload, HISTORY_KEYS)


def normalize_predictions(payload: Any) -> list[Any]:
    return extract_array(payload, PREDICTION_KEYS)


def normalize_partnerships(payload: Any) -> list[Any]:
    return extract_array(payload, PARTNERSHIP_KEYS)


def normalize_optimizations(payload: Any) -> list[Any]:
    return extract_array(payload, OPTIMIZATION_KEYS)


def _first_number(*values: Any) -> float:
    for value in values:
        numeric = coerce_number(value)
        if numeric is not None:
            return numeric
    return 0


def normalize_financial_impact(payload: Any) -> FinancialImpact:
    impact = extract_object(payload)
    breakdown = impact.get("breakdown")
    if breakdown is None:
        breakdown = impact.get("details")
    return FinancialImpact(
        min_revenue=_first_number(
            impact.get("minRevenue"),
            impact.get("min_revenue"),
            get_nested(impact, "range.min"),
        ),
        max_revenue=_first_number(
            impact.get("maxRevenue"),
            impact.get("max_revenue"),
            get_nested(impact, "range.max"),
        ),
        breakdown=breakdown,
    )


def normalize_profile_summary(payload: Any) -> ProfileSummary:
    summary = extract_object(payload)
    return ProfileSummary(
        productions=extract_number(summary, _PRODUCTION_KEYS),
        wastes=extract_number(summary, _WASTE_KEYS),
        needs=extract_number(summary, _NEED_KEYS),
        analyses=extract_number(summary, _ANALYSIS_KEYS),
    )


def normalize_sync_result(payload: Any) -> SyncResult:
    result = extract_object(payload)
    synced = result.get("syncedItems") or result
    return SyncResult(
        productions=extract_number(synced, _PRODUCTION_KEYS),
        wastes=extract_number(synced, _WASTE_KEYS),
        needs=extract_number(synced, _NEED_KEYS),
    )


def normalize_mapping_result(payload: Any) -> MappingResult:
    mapping = extract_object(payload)
    columns = extract_array(payload, ("columns", "mappedColumns", "mapping"))
    preview_rows = extract_array(
        payload, ("preview", "rows", "sampleRows", "sample", "data", "items")
    )

    column_count = len(columns)
    mapped_columns = mapping.get("mappedColumns")
    if not column_count and isinstance(mapped_columns, dict):
        column_count = len(mapped_columns)

    return MappingResult(
        column_count=column_count,
        preview_rows=preview_rows,
        mapping=mapping,
    )


def analyzed_item_count(payload: Any) -> float:
    return extract_number(extract_object(payload), _ANALYZED_KEYS)


def sync_message(result: SyncResult) -> str:
    if result.total > 0:
        return (
            f"{_plain(result.total)} éléments synchronisés "
            f"(prod: {_plain(result.productions)}, déchets: {_plain(result.wastes)}, "
            f"besoins: {_plain(result.needs)})"
        )
    return "Synchronisation terminée (aucun nouvel élément détecté)"


def mapping_message(column_count: int) -> str:
    if column_count <= 0:
        return "Colonnes mappées avec succès"
    plural = "s" if column_count > 1 else ""
    return f"{column_count} colonne{plural} détectée{plural} automatiquement"


def _plain(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
