from __future__ import annotations

from typing import Any

GENERIC_ERROR_MESSAGE = "Erreur réseau ou serveur"

AUTH_STATUSES = {401, 403}

UPLOAD_STATUS_MESSAGES = {
    413: "Fichier trop volumineux (max 5MB)",
    415: "Type de fichier non supporté (PNG, JPG, WEBP uniquement)",
    422: "Fichier invalide",
}


class ApiError(Exception):
    """Non-2xx answer from the backend, with the decoded body when there is one."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        self.headers = headers or {}


class NetworkError(ApiError):
    """No response at all: DNS, connection, TLS or timeout failure."""


class ValidationError(ValueError):
    """Input rejected client-side before any request is sent."""


def _body_field(error: BaseException, field: str) -> str | None:
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        value = body.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return None


def error_status(error: BaseException | None) -> int | None:
    return getattr(error, "status", None)


def is_auth_error(error: BaseException | None) -> bool:
    return error_status(error) in AUTH_STATUSES


def is_not_found(error: BaseException | None) -> bool:
    return error_status(error) == 404


def is_rate_limited(error: BaseException | None) -> bool:
    return error_status(error) == 429


def retry_after_from_error(error: BaseException) -> Any:
    body = getattr(error, "body", None)
    if isinstance(body, dict) and body.get("retryAfter") is not None:
        return body["retryAfter"]
    headers = getattr(error, "headers", None) or {}
    for name, value in headers.items():
        if name.lower() == "retry-after":
            return value
    return None


def error_message(error: BaseException, default: str) -> str:
    """First usable message from `body.error`, `body.message`, else default."""
    return _body_field(error, "error") or _body_field(error, "message") or default


def upload_error_message(error: BaseException) -> str:
    status = error_status(error)
    if status in UPLOAD_STATUS_MESSAGES:
        return UPLOAD_STATUS_MESSAGES[status]
    return _body_field(error, "error") or "Erreur lors du téléchargement"
