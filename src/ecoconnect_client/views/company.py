import logging
from typing import Any, Callable, Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.optimistic import OptimisticMutation
from ecoconnect_client.cache.query_cache import (
    QueryCache,
    QueryOptions,
    QueryResult,
    no_retry_on_not_found,
)
from ecoconnect_client.errors import ApiError, ValidationError, error_message
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.services import company_api
from ecoconnect_client.services.company_api import RESOURCE_PATHS

logger = logging.getLogger(__name__)

PROFILE_STALE_TIME = 5 * 60
RESOURCE_STALE_TIME = 3 * 60
GEOLOCATION_STALE_TIME = 10 * 60

# (added, updated, deleted, add error, update error, delete error)
RESOURCE_MESSAGES = {
    "production": (
        "Production ajoutée avec succès",
        "Production mise à jour",
        "Production supprimée",
        "Erreur lors de l'ajout de la production",
        "Erreur lors de la mise à jour de la production",
        "Erreur lors de la suppression de la production",
    ),
    "besoin": (
        "Besoin ajouté avec succès",
        "Besoin mis à jour",
        "Besoin supprimé",
        "Erreur lors de l'ajout du besoin",
        "Erreur lors de la mise à jour du besoin",
        "Erreur lors de la suppression du besoin",
    ),
    "dechet": (
        "Déchet ajouté avec succès",
        "Déchet mis à jour",
        "Déchet supprimé",
        "Erreur lors de l'ajout du déchet",
        "Erreur lors de la mise à jour du déchet",
        "Erreur lors de la suppression du déchet",
    ),
}


def _merge_general(old: Optional[dict[str, Any]], general: dict[str, Any]) -> Optional[dict[str, Any]]:
    if not old:
        return old
    return {**old, "general": {**(old.get("general") or {}), **general}}


def _created_profile(company: Any) -> dict[str, Any]:
    company = company if isinstance(company, dict) else {}
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
        "productions": [],
        "besoins": [],
        "dechets": [],
        "geolocation": {
            "address": company.get("address"),
            "latitude": company.get("latitude"),
            "longitude": company.get("longitude"),
        },
    }


class CompanyProfileView:
    """Company profile page: general section, resources and geolocation."""

    def __init__(self, client: ApiClient, cache: QueryCache, notifier: Notifier) -> None:
        self.client = client
        self.cache = cache
        self.notifier = notifier

        self._update_general = OptimisticMutation(
            cache,
            keys.company_profile(),
            mutate=lambda general: company_api.update_company_general(client, general),
            predict=_merge_general,
            success_message="Informations générales mises à jour",
            error_message="Erreur lors de la mise à jour des informations générales",
            notifier=notifier,
        )

    # Reads

    def profile(self) -> QueryResult:
        return self.cache.query(
            keys.company_profile(),
            lambda: company_api.get_company_profile(self.client),
            QueryOptions(stale_time=PROFILE_STALE_TIME, retry=no_retry_on_not_found()),
        )

    def resources(self, resource_type: str) -> QueryResult:
        return self.cache.query(
            self._resource_key(resource_type),
            lambda: company_api.get_resources(self.client, resource_type),
            QueryOptions(stale_time=RESOURCE_STALE_TIME, retry=no_retry_on_not_found()),
        )

    def geolocation(self) -> QueryResult:
        return self.cache.query(
            keys.company_section("geolocation"),
            lambda: company_api.get_geolocation(self.client),
            QueryOptions(stale_time=GEOLOCATION_STALE_TIME, retry=no_retry_on_not_found()),
        )

    def load_all(self) -> dict[str, Any]:
        results = {
            "profile": self.profile(),
            "productions": self.resources("production"),
            "besoins": self.resources("besoin"),
            "dechets": self.resources("dechet"),
            "geolocation": self.geolocation(),
        }
        state: dict[str, Any] = {name: result.data for name, result in results.items()}
        state["loading"] = any(result.is_loading for result in results.values())
        state["error"] = next(
            (result.error for result in results.values() if result.error), None
        )
        return state

    # Writes

    def create_company(self, company: dict[str, Any]) -> Any:
        try:
            created = company_api.create_company(self.client, company)
        except ApiError as exc:
            logger.error("Error creating company: %s", exc)
            self.notifier.error(
                error_message(exc, "Erreur lors de la création de l'entreprise")
            )
            raise
        self.cache.set(keys.company_profile(), _created_profile(created))
        self.cache.invalidate(keys.COMPANY)
        self.notifier.success("Entreprise créée avec succès!")
        return created

    def update_general(self, general: dict[str, Any]) -> Any:
        return self._update_general(general)

    @staticmethod
    def _resource_key(resource_type: str) -> keys.QueryKey:
        if resource_type not in RESOURCE_PATHS:
            raise ValueError(f"Unknown resource type: {resource_type}")
        return keys.company_section(RESOURCE_PATHS[resource_type])

    def _resource_action(
        self,
        resource_type: str,
        action: Callable[[], Any],
        success: str,
        failure: str,
    ) -> Any:
        resource_key = self._resource_key(resource_type)
        try:
            result = action()
        except ApiError as exc:
            logger.error("Error on %s: %s", resource_type, exc)
            self.notifier.error(failure)
            raise
        self.cache.invalidate(resource_key)
        self.cache.invalidate(keys.company_profile())
        self.notifier.success(success)
        return result

    def add_resource(self, resource_type: str, data: dict[str, Any]) -> Any:
        messages = RESOURCE_MESSAGES[resource_type]
        return self._resource_action(
            resource_type,
            lambda: company_api.add_resource(self.client, resource_type, data),
            messages[0],
            messages[3],
        )

    def update_resource(self, resource_type: str, resource_id: str, data: dict[str, Any]) -> Any:
        messages = RESOURCE_MESSAGES[resource_type]
        return self._resource_action(
            resource_type,
            lambda: company_api.update_resource(self.client, resource_type, resource_id, data),
            messages[1],
            messages[4],
        )

    def delete_resource(self, resource_type: str, resource_id: str) -> Any:
        messages = RESOURCE_MESSAGES[resource_type]
        return self._resource_action(
            resource_type,
            lambda: company_api.delete_resource(self.client, resource_type, resource_id),
            messages[2],
            messages[5],
        )

    def update_geolocation(self, geo: dict[str, Any]) -> Any:
        try:
            result = company_api.update_geolocation(self.client, geo)
        except ValidationError as exc:
            self.notifier.error(str(exc))
            raise
        except ApiError as exc:
            logger.error("Error updating geolocation: %s", exc)
            self.notifier.error("Erreur lors de la mise à jour de la géolocalisation")
            raise
        self.cache.invalidate(keys.company_section("geolocation"))
        self.cache.invalidate(keys.company_profile())
        self.notifier.success("Géolocalisation mise à jour")
        return result
