import logging
from typing import Any, Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.optimistic import OptimisticMutation
from ecoconnect_client.cache.query_cache import QueryCache, QueryOptions, QueryResult
from ecoconnect_client.errors import (
    ApiError,
    ValidationError,
    error_message,
    is_auth_error,
    upload_error_message,
)
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import Download, UploadFile
from ecoconnect_client.normalizers.fields import ensure_dict
from ecoconnect_client.normalizers.profile import display_name, initials, normalize_user
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.services import account_api
from ecoconnect_client.storage.kv_store import AUTH_TOKEN_KEY, KeyValueStore
from ecoconnect_client.storage.previews import PreviewRegistry

logger = logging.getLogger(__name__)

USER_STALE_TIME = 5 * 60
DEFAULT_AVATAR_MAX_BYTES = 5 * 1024 * 1024


def _user_payload(payload: Any) -> dict[str, Any]:
    """Cached shape of the current user: `{"user": {...}}`."""
    root = ensure_dict(payload)
    return {"user": normalize_user(root.get("user") or root)}


def _merge_user(old: Optional[dict[str, Any]], fields: dict[str, Any]) -> dict[str, Any]:
    old = old or {}
    return {**old, "user": {**(old.get("user") or {}), **fields}}


def validate_avatar(upload: UploadFile, max_bytes: int = DEFAULT_AVATAR_MAX_BYTES) -> None:
    if not (upload.content_type or "").startswith("image/"):
        raise ValidationError("Veuillez sélectionner une image")
    if upload.size > max_bytes:
        raise ValidationError("L'image ne doit pas dépasser 5MB")


class AccountView:
    """Current user: session, profile fields and avatar."""

    def __init__(
        self,
        client: ApiClient,
        cache: QueryCache,
        notifier: Notifier,
        token_store: KeyValueStore,
        previews: Optional[PreviewRegistry] = None,
        avatar_max_bytes: int = DEFAULT_AVATAR_MAX_BYTES,
        avatar_timeout: Optional[float] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self.token_store = token_store
        self.previews = previews or PreviewRegistry()
        self.avatar_max_bytes = avatar_max_bytes
        self.avatar_timeout = avatar_timeout

        self._update_profile = OptimisticMutation(
            cache,
            keys.auth_user(),
            mutate=lambda fields: account_api.update_user_profile(client, fields),
            predict=_merge_user,
            commit=self._commit_profile,
            success_message="Profil mis à jour avec succès",
            error_message=lambda error, fields: error_message(
                error, str(error) or "Erreur lors de la mise à jour"
            ),
            invalidate=[keys.dashboard_completion()],
            notifier=notifier,
        )

    # Session

    def handle_auth_failure(self, error: BaseException) -> None:
        """Query-cache error hook: an expired session logs the user out locally."""
        if not is_auth_error(error):
            return
        logger.warning("Authentication rejected (%s), clearing session", error)
        self.token_store.remove(AUTH_TOKEN_KEY)
        self.cache.clear()

    def login(self, email: str, password: str) -> dict[str, Any]:
        payload = ensure_dict(account_api.login_user(self.client, email, password))
        token = payload.get("token") or payload.get("accessToken")
        if token:
            self.token_store.set(AUTH_TOKEN_KEY, str(token))
        self.cache.remove(keys.AUTH)
        if payload.get("user"):
            self.cache.set(keys.auth_user(), _user_payload(payload))
        return payload

    def logout(self) -> dict[str, Any]:
        try:
            return account_api.logout_user(self.client)
        finally:
            self.token_store.remove(AUTH_TOKEN_KEY)
            self.cache.clear()

    def is_authenticated(self) -> bool:
        return bool(self.token_store.get(AUTH_TOKEN_KEY))

    # Profile

    def current_user(self) -> QueryResult:
        return self.cache.query(
            keys.auth_user(),
            lambda: _user_payload(account_api.get_current_user(self.client)),
            QueryOptions(stale_time=USER_STALE_TIME),
        )

    def user(self) -> Optional[dict[str, Any]]:
        data = self.current_user().data
        return data.get("user") if data else None

    def display_name(self) -> str:
        return display_name(self.user())

    def initials(self) -> str:
        return initials(self.user())

    @staticmethod
    def _commit_profile(current: Any, result: Any, fields: dict[str, Any]) -> Any:
        if isinstance(result, dict) and result.get("user"):
            return _user_payload(result)
        return None

    def update_profile(self, fields: dict[str, Any]) -> Any:
        return self._update_profile(fields)

    # Avatar

    def upload_avatar(self, upload: UploadFile) -> Any:
        try:
            validate_avatar(upload, self.avatar_max_bytes)
        except ValidationError as exc:
            self.notifier.error(str(exc))
            raise

        preview_url = self.previews.create(upload)

        def predict(old: Any, _upload: UploadFile) -> dict[str, Any]:
            return _merge_user(old, {"avatar_url": preview_url, "avatar_pending": True})

        def commit(current: Any, result: Any, _upload: UploadFile) -> Any:
            body = ensure_dict(result)
            avatar_url = ensure_dict(body.get("user")).get("avatar_url") or body.get("avatar_url")
            if not avatar_url:
                return None
            return _merge_user(current, {"avatar_url": avatar_url, "avatar_pending": False})

        mutation = OptimisticMutation(
            self.cache,
            keys.auth_user(),
            mutate=self._replace_avatar,
            predict=predict,
            commit=commit,
            success_message="Avatar mis à jour avec succès",
            error_message=lambda error, _upload: upload_error_message(error),
            invalidate=[keys.dashboard_completion()],
            notifier=self.notifier,
        )
        try:
            return mutation(upload)
        finally:
            self.previews.release(preview_url)

    def _replace_avatar(self, upload: UploadFile) -> Any:
        try:
            account_api.delete_avatar(self.client)
        except ApiError as exc:
            logger.warning("Could not delete previous avatar: %s", exc)
        return account_api.upload_avatar(self.client, upload, timeout=self.avatar_timeout)

    def delete_avatar(self) -> Any:
        try:
            result = account_api.delete_avatar(self.client)
        except ApiError as exc:
            self.notifier.error(error_message(exc, "Erreur lors de la suppression"))
            raise
        finally:
            self.cache.invalidate(keys.dashboard_completion())
            self.cache.invalidate(keys.auth_user())
        self.cache.set(
            keys.auth_user(),
            lambda old: _merge_user(old, {"avatar_url": None}),
        )
        self.notifier.success("Avatar supprimé")
        return result

    def avatar_bytes(self) -> Optional[Download]:
        """Binary avatar, or None when the user has none yet."""
        try:
            return account_api.fetch_avatar(self.client, timeout=self.avatar_timeout)
        except ApiError as exc:
            logger.info("No avatar available: %s", exc.status or exc)
            return None
