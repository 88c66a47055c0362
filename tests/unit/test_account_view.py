import pytest

from ecoconnect_client.cache import keys
from ecoconnect_client.errors import ApiError, NetworkError, ValidationError
from ecoconnect_client.models.schemas import UploadFile
from ecoconnect_client.storage.kv_store import AUTH_TOKEN_KEY
from ecoconnect_client.views.account import AccountView

PNG = UploadFile(name="me.png", content=b"\x89PNG\r\n", content_type="image/png")


@pytest.fixture
def view(client, cache, notifier, token_store) -> AccountView:
    return AccountView(client, cache, notifier, token_store)


def test_non_image_is_rejected_before_any_request(view, session, notifier) -> None:
    upload = UploadFile(name="cv.pdf", content=b"%PDF", content_type="application/pdf")

    with pytest.raises(ValidationError):
        view.upload_avatar(upload)

    assert session.calls == []
    assert notifier.messages("error") == ["Veuillez sélectionner une image"]


def test_oversized_image_is_rejected_before_any_request(view, session, notifier) -> None:
    upload = UploadFile(
        name="big.png", content=b"\0" * (5 * 1024 * 1024 + 1), content_type="image/png"
    )

    with pytest.raises(ValidationError):
        view.upload_avatar(upload)

    assert session.calls == []
    assert notifier.messages("error") == ["L'image ne doit pas dépasser 5MB"]


def test_avatar_upload_replaces_preview_with_server_url(view, session, cache, notifier) -> None:
    cache.set(keys.auth_user(), {"user": {"firstName": "Ana"}})
    session.add("DELETE", "/user/avatar", status=204)
    session.add("POST", "/user/avatar", {"user": {"avatar_url": "/avatars/1.png"}})

    view.upload_avatar(PNG)

    user = cache.get(keys.auth_user())["user"]
    assert user["avatar_url"] == "/avatars/1.png"
    assert user["avatar_pending"] is False
    assert session.paths() == ["/user/avatar", "/user/avatar"]
    assert view.previews.active == []
    assert notifier.messages("success") == ["Avatar mis à jour avec succès"]


def test_old_avatar_delete_failure_is_tolerated(view, session, cache) -> None:
    session.add("DELETE", "/user/avatar", {"error": "missing"}, status=500)
    session.add("POST", "/user/avatar", {"avatar_url": "/avatars/2.png"})

    view.upload_avatar(PNG)

    assert cache.get(keys.auth_user())["user"]["avatar_url"] == "/avatars/2.png"


def test_failed_avatar_upload_rolls_back(view, session, cache, notifier) -> None:
    cache.set(keys.auth_user(), {"user": {"firstName": "Ana"}})
    session.add("DELETE", "/user/avatar", status=204)
    session.add("POST", "/user/avatar", {"error": "too big"}, status=413)

    with pytest.raises(ApiError):
        view.upload_avatar(PNG)

    assert cache.get(keys.auth_user()) == {"user": {"firstName": "Ana"}}
    assert notifier.messages("error") == ["Fichier trop volumineux (max 5MB)"]
    assert view.previews.active == []


def test_auth_failure_clears_token_and_cache(view, cache, token_store) -> None:
    cache.set(keys.company_profile(), {"name": "Atelier"})

    view.handle_auth_failure(ApiError("server", status=500))
    assert token_store.get(AUTH_TOKEN_KEY) == "token-123"

    view.handle_auth_failure(ApiError("expired", status=401))
    assert token_store.get(AUTH_TOKEN_KEY) is None
    assert cache.keys() == []


def test_rejected_profile_read_logs_out_through_cache_hook(view, session, cache, token_store) -> None:
    cache.on_error = view.handle_auth_failure
    session.add("GET", "/user/profile", {"error": "Token expiré"}, status=401)

    result = view.current_user()

    assert result.is_error
    assert result.error.status == 401
    assert len(session.calls) == 1
    assert not view.is_authenticated()


def test_logout_clears_session_even_when_request_fails(
    view, session, cache, token_store, connection_error
) -> None:
    cache.set(keys.auth_user(), {"user": {}})
    session.add("POST", "/logout", error=connection_error)

    with pytest.raises(NetworkError):
        view.logout()

    assert token_store.get(AUTH_TOKEN_KEY) is None
    assert cache.keys() == []


def test_login_stores_token_and_user(view, session, token_store) -> None:
    session.add(
        "POST", "/login",
        {"token": "fresh", "user": {"firstName": "Ana", "lastName": "Martin"}},
    )

    view.login("ana@example.fr", "secret")

    assert token_store.get(AUTH_TOKEN_KEY) == "fresh"
    assert view.display_name() == "Ana Martin"
    assert view.initials() == "AM"
    assert session.paths("GET") == []


def test_profile_update_commits_server_user(view, session, cache, notifier) -> None:
    cache.set(keys.auth_user(), {"user": {"firstName": "Ana", "lastName": "Martin"}})
    cache.set(keys.dashboard_completion(), {"percent": 40})
    session.add("PUT", "/user/profile", {"user": {"firstName": "Anaïs", "lastName": "Martin"}})

    view.update_profile({"firstName": "Anaïs"})

    assert view.cache.get(keys.auth_user())["user"]["prenom"] == "Anaïs"
    assert cache.get_entry(keys.dashboard_completion()).is_stale
    assert notifier.messages("success") == ["Profil mis à jour avec succès"]
    assert session.calls[0]["json"] == {"firstName": "Anaïs"}


def test_missing_avatar_returns_none(view, session) -> None:
    session.add("GET", "/user/avatar", {"error": "none"}, status=404)

    assert view.avatar_bytes() is None
