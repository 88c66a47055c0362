from typing import Any

from ecoconnect_client.errors import ValidationError
from ecoconnect_client.http.client import ApiClient


def fetch_directory(client: ApiClient, params: dict[str, Any] | None = None) -> Any:
    return client.get("/company/companies", params=params or None)


def fetch_public_profile(client: ApiClient, company_id: str) -> Any:
    if not company_id:
        raise ValidationError("companyId requis")
    return client.get(f"/company/companies/{company_id}")
