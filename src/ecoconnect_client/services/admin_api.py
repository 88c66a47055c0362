import logging
from datetime import date
from typing import Any

from ecoconnect_client.errors import ApiError, is_not_found
from ecoconnect_client.http.client import ApiClient, dated_filename
from ecoconnect_client.models.schemas import (
    AdminCompaniesPage,
    AdminMetrics,
    Download,
    SystemStats,
)
from ecoconnect_client.normalizers.admin import (
    normalize_companies_payload,
    normalize_metrics_payload,
    normalize_system_stats_payload,
)

logger = logging.getLogger(__name__)


def _get_with_fallback(client: ApiClient, path: str, fallback_path: str) -> Any:
    try:
        return client.get(path)
    except ApiError as exc:
        if not is_not_found(exc):
            raise
        logger.info("%s not found, falling back to %s", path, fallback_path)
        return client.get(fallback_path)


def fetch_metrics(client: ApiClient) -> AdminMetrics:
    payload = _get_with_fallback(client, "/admin/dashboard/metrics", "/admin/dashboard")
    return normalize_metrics_payload(payload)


def fetch_system_stats(client: ApiClient) -> SystemStats:
    payload = _get_with_fallback(client, "/admin/system-stats", "/admin/dashboard/stats")
    return normalize_system_stats_payload(payload)


def fetch_companies(
    client: ApiClient,
    page: int | None = None,
    per_page: int | None = None,
    status: str | None = None,
    sector: str | None = None,
    search: str | None = None,
) -> AdminCompaniesPage:
    payload = client.get(
        "/admin/companies",
        params={
            "page": page,
            "perPage": per_page,
            "status": status,
            "sector": sector,
            "search": search,
        },
    )
    return normalize_companies_payload(payload)


def export_companies(
    client: ApiClient,
    status: str | None = None,
    sector: str | None = None,
    search: str | None = None,
    today: date | None = None,
) -> Download:
    return client.download(
        "/admin/companies/export",
        dated_filename("entreprises", "csv", today),
        params={"status": status, "sector": sector, "search": search},
    )
