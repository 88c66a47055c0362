import logging
from typing import Any

from ecoconnect_client.errors import ApiError, NetworkError
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import Download, UploadFile

logger = logging.getLogger(__name__)


def register_user(client: ApiClient, payload: dict[str, Any]) -> Any:
    return client.post("/addUser", json=payload)


def login_user(client: ApiClient, email: str, password: str) -> Any:
    return client.post("/login", json={"email": email, "password": password})


def logout_user(client: ApiClient) -> dict[str, Any]:
    """Server-side logout; an error answer is reported, not raised."""
    try:
        response = client.request("POST", "/logout")
    except NetworkError:
        raise
    except ApiError as exc:
        logger.warning("Logout answered %s", exc.status)
        return {"ok": False, "status": exc.status, "body": exc.body}
    return {"ok": True, "status": response.status_code}


def confirm_email(client: ApiClient, token: str) -> Any:
    return client.post("/confirm-email", json={"token": token})


def get_current_user(client: ApiClient) -> Any:
    return client.get("/user/profile")


def update_user_profile(client: ApiClient, fields: dict[str, Any]) -> Any:
    return client.put("/user/profile", json=fields)


def upload_avatar(client: ApiClient, upload: UploadFile, timeout: float | None = None) -> Any:
    return client.post("/user/avatar", files={"avatar": upload}, timeout=timeout)


def delete_avatar(client: ApiClient) -> Any:
    return client.delete("/user/avatar")


def fetch_avatar(client: ApiClient, timeout: float | None = None) -> Download:
    return client.download("/user/avatar", "avatar", timeout=timeout)


def get_profile_completion(client: ApiClient) -> Any:
    return client.get("/user/completion")


def get_dashboard_stats(client: ApiClient) -> Any:
    return client.get("/dashboard/stats")


def get_user_companies(client: ApiClient) -> Any:
    return client.get("/user/companies")
