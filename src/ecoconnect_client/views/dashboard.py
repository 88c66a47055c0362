from dataclasses import dataclass
from typing import Any, Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.query_cache import QueryCache, QueryOptions, QueryResult
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.services import account_api

STATS_STALE_TIME = 5 * 60
COMPANIES_STALE_TIME = 5 * 60
COMPLETION_STALE_TIME = 2 * 60


@dataclass
class DashboardState:
    stats: Any
    companies: Any
    completion: Any
    loading: bool
    error: Optional[BaseException]
    is_stale: bool


class DashboardView:
    def __init__(self, client: ApiClient, cache: QueryCache) -> None:
        self.client = client
        self.cache = cache

    def stats(self) -> QueryResult:
        return self.cache.query(
            keys.dashboard_stats(),
            lambda: account_api.get_dashboard_stats(self.client),
            QueryOptions(stale_time=STATS_STALE_TIME),
        )

    def companies(self) -> QueryResult:
        return self.cache.query(
            keys.dashboard_companies(),
            lambda: account_api.get_user_companies(self.client),
            QueryOptions(stale_time=COMPANIES_STALE_TIME),
        )

    def completion(self) -> QueryResult:
        return self.cache.query(
            keys.dashboard_completion(),
            lambda: account_api.get_profile_completion(self.client),
            QueryOptions(stale_time=COMPLETION_STALE_TIME),
        )

    def load_all(self) -> DashboardState:
        """The three dashboard queries as one state; the first error wins."""
        results = [self.stats(), self.companies(), self.completion()]
        error = next((result.error for result in results if result.error), None)
        return DashboardState(
            stats=results[0].data,
            companies=results[1].data,
            completion=results[2].data,
            loading=any(result.is_loading for result in results),
            error=error,
            is_stale=any(result.is_stale for result in results),
        )

    def invalidate_all(self) -> None:
        self.cache.invalidate(keys.DASHBOARD)

    def invalidate_stats(self) -> None:
        self.cache.invalidate(keys.dashboard_stats())

    def invalidate_companies(self) -> None:
        self.cache.invalidate(keys.dashboard_companies())

    def invalidate_completion(self) -> None:
        self.cache.invalidate(keys.dashboard_completion())
