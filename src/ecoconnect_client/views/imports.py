import logging
from pathlib import Path
from typing import Any, Callable, Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.query_cache import QueryCache, QueryOptions, QueryResult
from ecoconnect_client.errors import ApiError, error_message
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import Download, MappingResult, SyncResult, UploadFile
from ecoconnect_client.normalizers.imports import (
    analyzed_item_count,
    mapping_message,
    normalize_financial_impact,
    normalize_history,
    normalize_mapping_result,
    normalize_optimizations,
    normalize_partnerships,
    normalize_predictions,
    normalize_profile_summary,
    normalize_sync_result,
    sync_message,
)
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.services import import_api

logger = logging.getLogger(__name__)

STATS_STALE_TIME = 5 * 60
HISTORY_STALE_TIME = 2 * 60
ANALYSIS_STALE_TIME = 10 * 60
SUMMARY_STALE_TIME = 5 * 60

# Families refreshed once imported data lands in the company profile.
SYNC_INVALIDATES = (
    keys.DASHBOARD,
    keys.COMPANY,
    keys.import_history(),
    keys.import_profile_summary(),
)

_ANALYSIS_NORMALIZERS: dict[str, Callable[[Any], Any]] = {
    "predictions": normalize_predictions,
    "partnerships": normalize_partnerships,
    "optimizations": normalize_optimizations,
    "impact": normalize_financial_impact,
}


class ImportView:
    """Spreadsheet import: upload, column mapping, AI analysis and sync."""

    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        notifier: Notifier,
        upload_timeout: Optional[float] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self.upload_timeout = upload_timeout

    # Reads

    def stats(self) -> QueryResult:
        return self.cache.query(
            keys.import_stats(),
            lambda: import_api.get_stats(self.client),
            QueryOptions(stale_time=STATS_STALE_TIME),
        )

    def history(self, limit: int = 30) -> QueryResult:
        return self.cache.query(
            keys.import_history(limit),
            lambda: normalize_history(import_api.get_history(self.client, limit)),
            QueryOptions(stale_time=HISTORY_STALE_TIME),
        )

    def analysis(self, kind: str, analysis_id: Optional[str]) -> QueryResult:
        normalize = _ANALYSIS_NORMALIZERS[kind]
        return self.cache.query(
            keys.import_analysis(kind, analysis_id or ""),
            lambda: normalize(
                import_api.get_analysis_result(self.client, analysis_id, kind)
            ),
            QueryOptions(stale_time=ANALYSIS_STALE_TIME, enabled=bool(analysis_id)),
        )

    def predictions(self, analysis_id: Optional[str]) -> QueryResult:
        return self.analysis("predictions", analysis_id)

    def partnerships(self, analysis_id: Optional[str]) -> QueryResult:
        return self.analysis("partnerships", analysis_id)

    def optimizations(self, analysis_id: Optional[str]) -> QueryResult:
        return self.analysis("optimizations", analysis_id)

    def financial_impact(self, analysis_id: Optional[str]) -> QueryResult:
        return self.analysis("impact", analysis_id)

    def profile_summary(self) -> QueryResult:
        return self.cache.query(
            keys.import_profile_summary(),
            lambda: normalize_profile_summary(import_api.get_profile_summary(self.client)),
            QueryOptions(stale_time=SUMMARY_STALE_TIME),
        )

    # Actions

    def _fail(self, exc: ApiError, action: str, default: str) -> None:
        logger.error("Error %s: %s", action, exc)
        self.notifier.error(error_message(exc, default))

    def upload(self, upload: UploadFile) -> Any:
        try:
            result = import_api.upload_file(self.client, upload, timeout=self.upload_timeout)
        except ApiError as exc:
            self._fail(exc, "uploading file", "Erreur lors de l'import du fichier")
            raise
        self.notifier.success("Fichier importé avec succès")
        self.cache.invalidate(keys.import_stats())
        self.cache.invalidate(keys.import_history())
        return result

    def map_columns(self, file_id: str, mapping: Any = "auto") -> MappingResult:
        try:
            payload = import_api.map_columns(self.client, file_id, mapping)
        except ApiError as exc:
            self._fail(exc, "mapping columns", "Erreur lors du mapping des colonnes")
            raise
        result = normalize_mapping_result(payload)
        self.notifier.success(mapping_message(result.column_count))
        if result.column_count == 0:
            self.notifier.warning(
                "Aucune colonne détectée automatiquement. Vérifiez votre fichier avant de continuer."
            )
        if not result.preview_rows:
            self.notifier.warning("Aucun aperçu de lignes renvoyé par l'API.")
        return result

    def run_analysis(self, file_id: str) -> Any:
        try:
            payload = import_api.run_analysis(self.client, file_id)
        except ApiError as exc:
            self._fail(exc, "running analysis", "Erreur lors de l'analyse IA")
            raise
        total = analyzed_item_count(payload)
        if total:
            self.notifier.success(f"Analyse IA terminée : {total:g} lignes traitées")
        else:
            self.notifier.success("Analyse IA terminée")
        self.cache.invalidate(keys.IMPORT)
        return payload

    def sync(self, analysis_id: str) -> SyncResult:
        try:
            payload = import_api.sync_data(self.client, analysis_id)
        except ApiError as exc:
            self._fail(exc, "syncing data", "Erreur lors de la synchronisation")
            raise
        result = normalize_sync_result(payload)
        self.notifier.success(sync_message(result))
        if result.total == 0:
            logger.warning("Sync of %s returned no new items: %s", analysis_id, payload)
        for family in SYNC_INVALIDATES:
            self.cache.invalidate(family)
        return result

    def download_template(self, destination: Optional[Path] = None) -> Download:
        try:
            download = import_api.download_template(self.client)
        except ApiError as exc:
            logger.error("Error downloading template: %s", exc)
            self.notifier.error("Erreur lors du téléchargement")
            raise
        if destination is not None:
            target = destination / download.filename if destination.is_dir() else destination
            target.write_bytes(download.content)
            logger.info("Template written to %s", target)
        self.notifier.success("Modèle téléchargé")
        return download
