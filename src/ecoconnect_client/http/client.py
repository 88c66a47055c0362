from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any

import certifi
import requests

from ecoconnect_client.errors import GENERIC_ERROR_MESSAGE, ApiError, NetworkError
from ecoconnect_client.models.schemas import Download, UploadFile
from ecoconnect_client.storage.kv_store import AUTH_TOKEN_KEY, KeyValueStore

logger = logging.getLogger(__name__)

_FILENAME_RE = re.compile(r'filename="?([^"]+)"?')

# Logout relies on the http-only refresh cookie, never on the bearer token.
_COOKIE_ONLY_PATHS = {"/logout"}


def _clean_params(params: dict[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    cleaned = {
        key: value
        for key, value in params.items()
        if value is not None and str(value) != ""
    }
    return cleaned or None


def _decode_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def filename_from_disposition(disposition: str | None, default: str) -> str:
    if not disposition:
        return default
    match = _FILENAME_RE.search(disposition)
    if match and match.group(1):
        return match.group(1).strip()
    return default


def dated_filename(prefix: str, extension: str, today: date | None = None) -> str:
    day = today or date.today()
    return f"{prefix}-{day.isoformat()}.{extension}"


class ApiClient:
    """Authenticated request sender for the EcoConnect REST backend."""

    def __init__(
        self,
        base_url: str,
        token_store: KeyValueStore,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        verify: str | bool | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.timeout = timeout
        # the session keeps the refresh-token cookie between calls
        self.session = session or requests.Session()
        self.verify = certifi.where() if verify is None else verify

    def _headers(self, path: str) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if path in _COOKIE_ONLY_PATHS:
            return headers
        token = self.token_store.get(AUTH_TOKEN_KEY)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        files: dict[str, UploadFile] | None = None,
        timeout: float | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        request_kwargs: dict[str, Any] = {
            "headers": self._headers(path),
            "params": _clean_params(params),
            "timeout": timeout or self.timeout,
            "verify": self.verify,
        }
        if json is not None:
            request_kwargs["json"] = json
        if files:
            # requests builds the multipart boundary itself
            request_kwargs["files"] = {
                field_name: (upload.name, upload.content, upload.content_type)
                for field_name, upload in files.items()
            }

        logger.debug("API %s %s", method, path)
        try:
            response = self.session.request(method, url, **request_kwargs)
        except requests.RequestException as exc:
            reason = str(exc).strip() or exc.__class__.__name__
            logger.error("API %s %s failed: %s", method, path, reason)
            raise NetworkError(GENERIC_ERROR_MESSAGE) from exc

        if not 200 <= response.status_code < 300:
            body = _decode_body(response)
            message = GENERIC_ERROR_MESSAGE
            if isinstance(body, dict):
                message = body.get("error") or body.get("message") or message
            logger.debug(
                "API %s %s answered %s", method, path, response.status_code
            )
            raise ApiError(
                str(message),
                status=response.status_code,
                body=body,
                headers=dict(response.headers or {}),
            )
        return response

    def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self.request(method, path, **kwargs)
        return _decode_body(response)

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request_json("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> Any:
        return self.request_json("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> Any:
        return self.request_json("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request_json("DELETE", path, **kwargs)

    def download(
        self,
        path: str,
        default_filename: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Download:
        response = self.request("GET", path, params=params, timeout=timeout)
        headers = response.headers or {}
        disposition = headers.get("content-disposition") or headers.get(
            "Content-Disposition"
        )
        content_type = headers.get("content-type") or headers.get(
            "Content-Type"
        )
        return Download(
            content=response.content or b"",
            filename=filename_from_disposition(disposition, default_filename),
            content_type=content_type or "application/octet-stream",
        )
