import dataclasses
import logging
from typing import Any, Iterable, Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.query_cache import (
    QueryCache,
    QueryOptions,
    QueryResult,
    no_retry_on_not_found,
)
from ecoconnect_client.errors import is_not_found
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import DirectoryCompany
from ecoconnect_client.normalizers.directory import (
    DEFAULT_MAX_DISTANCE,
    DEFAULT_PAGE_SIZE,
    build_directory_params,
    facet_values,
    normalize_directory_payload,
    normalize_public_company,
    selection_param,
)
from ecoconnect_client.services import directory_api

logger = logging.getLogger(__name__)

DIRECTORY_STALE_TIME = 60

PROFILE_MISSING_MESSAGE = "Aucune fiche détaillée disponible pour cette entreprise."
PROFILE_GONE_MESSAGE = "Cette entreprise n'est plus disponible dans l'annuaire."
PROFILE_ERROR_MESSAGE = "Impossible de charger le profil de cette entreprise pour le moment."


def public_profile_error_message(error: Optional[BaseException], has_listing: bool = False) -> Optional[str]:
    if error is None:
        return None
    if is_not_found(error):
        return PROFILE_MISSING_MESSAGE if has_listing else PROFILE_GONE_MESSAGE
    return PROFILE_ERROR_MESSAGE


class DirectoryView:
    """Company directory search and the public company page."""

    def __init__(self, client: ApiClient, cache: QueryCache) -> None:
        self.client = client
        self.cache = cache
        # facet options from the last page that reported any
        self.sector_options: list[str] = []
        self.waste_options: list[str] = []

    def search(
        self,
        search: Optional[str] = None,
        sectors: Optional[Iterable[str]] = None,
        waste_types: Optional[Iterable[str]] = None,
        max_distance: Optional[float] = DEFAULT_MAX_DISTANCE,
        page: Optional[int] = 1,
        limit: Optional[int] = DEFAULT_PAGE_SIZE,
    ) -> QueryResult:
        params = build_directory_params(
            search=search,
            sectors=selection_param(sectors, self.sector_options),
            waste_types=selection_param(waste_types, self.waste_options),
            max_distance=max_distance,
            page=page,
            limit=limit,
        )
        result = self.cache.query(
            keys.directory(params),
            lambda: normalize_directory_payload(
                directory_api.fetch_directory(self.client, params)
            ),
            QueryOptions(stale_time=DIRECTORY_STALE_TIME),
        )
        if result.data is not None:
            if result.data.sectors:
                self.sector_options = facet_values(result.data.sectors)
            if result.data.waste_types:
                self.waste_options = facet_values(result.data.waste_types)
        return result

    def public_profile(self, company_id: Optional[str], listing: Any = None) -> QueryResult:
        """Public page of one company; the listing record stands in when the profile is missing."""
        result = self.cache.query(
            keys.company_public(company_id or ""),
            lambda: normalize_public_company(
                directory_api.fetch_public_profile(self.client, company_id), company_id
            ),
            QueryOptions(retry=no_retry_on_not_found(1), enabled=bool(company_id)),
        )
        if result.data is None and listing is not None:
            if isinstance(listing, DirectoryCompany):
                listing = dataclasses.asdict(listing)
            result.data = normalize_public_company(listing, company_id)
        if result.is_error:
            logger.warning("Public profile %s unavailable: %s", company_id, result.error)
        return result
