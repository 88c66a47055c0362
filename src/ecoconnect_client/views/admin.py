import logging
from datetime import date
from pathlib import Path
from typing import Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.query_cache import QueryCache, QueryOptions, QueryResult
from ecoconnect_client.errors import ApiError, error_message
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import Download
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.services import admin_api

logger = logging.getLogger(__name__)

METRICS_STALE_TIME = 60
COMPANIES_STALE_TIME = 30
SYSTEM_STATS_STALE_TIME = 5 * 60


class AdminView:
    def __init__(self, client: ApiClient, cache: QueryCache, notifier: Notifier) -> None:
        self.client = client
        self.cache = cache
        self.notifier = notifier

    def metrics(self) -> QueryResult:
        return self.cache.query(
            keys.admin_metrics(),
            lambda: admin_api.fetch_metrics(self.client),
            QueryOptions(stale_time=METRICS_STALE_TIME),
        )

    def companies(
        self,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        status: Optional[str] = None,
        sector: Optional[str] = None,
        search: Optional[str] = None,
    ) -> QueryResult:
        params = {
            "page": page,
            "per_page": per_page,
            "status": status,
            "sector": sector,
            "search": search,
        }
        return self.cache.query(
            keys.admin_companies(params),
            lambda: admin_api.fetch_companies(self.client, **params),
            QueryOptions(stale_time=COMPANIES_STALE_TIME),
        )

    def system_stats(self) -> QueryResult:
        return self.cache.query(
            keys.admin_system_stats(),
            lambda: admin_api.fetch_system_stats(self.client),
            QueryOptions(stale_time=SYSTEM_STATS_STALE_TIME),
        )

    def export_companies(
        self,
        destination: Optional[Path] = None,
        status: Optional[str] = None,
        sector: Optional[str] = None,
        search: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Download:
        """Download the companies CSV; written under `destination` when given."""
        try:
            download = admin_api.export_companies(
                self.client, status=status, sector=sector, search=search, today=today
            )
        except ApiError as exc:
            logger.error("Error exporting companies: %s", exc)
            self.notifier.error(error_message(exc, "Erreur lors de l'export"))
            raise
        if destination is not None:
            target = destination / download.filename if destination.is_dir() else destination
            target.write_bytes(download.content)
            logger.info("Companies exported to %s", target)
        self.notifier.success("Export terminé")
        return download
