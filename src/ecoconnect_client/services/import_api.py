from typing import Any

from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import Download, UploadFile

TEMPLATE_FILENAME = "modele_import_ecopaluds.xlsx"


def upload_file(client: ApiClient, upload: UploadFile, timeout: float | None = None) -> Any:
    """Spreadsheet (.xlsx, .csv, .ods) sent as-is; the backend parses it."""
    return client.post("/import/upload", files={"file": upload}, timeout=timeout)


def get_stats(client: ApiClient) -> Any:
    return client.get("/import/stats")


def map_columns(client: ApiClient, file_id: str, mapping: Any = "auto") -> Any:
    return client.post(f"/import/{file_id}/map", json={"mapping": mapping})


def run_analysis(client: ApiClient, file_id: str) -> Any:
    return client.post(f"/import/{file_id}/analyze")


def get_analysis_result(client: ApiClient, analysis_id: str, kind: str) -> Any:
    """kind: predictions, partnerships, optimizations or impact."""
    return client.get(f"/import/analysis/{analysis_id}/{kind}")


def get_history(client: ApiClient, limit: int = 30) -> Any:
    return client.get("/import/history", params={"limit": limit})


def sync_data(client: ApiClient, analysis_id: str) -> Any:
    return client.post(f"/import/analysis/{analysis_id}/sync")


def download_template(client: ApiClient) -> Download:
    return client.download("/import/template", TEMPLATE_FILENAME)


def get_profile_summary(client: ApiClient) -> Any:
    return client.get("/import/profile-summary")
