from datetime import datetime, timezone

import pytest

from ecoconnect_client.cache import keys
from ecoconnect_client.errors import ApiError
from ecoconnect_client.views.dashboard import DashboardView
from ecoconnect_client.views.suggestions import SuggestionsView

LIST = {
    "suggestions": [
        {"id": "s1", "company_name": "Recyclage Sud", "compatibility": 85, "status": "new"},
        {"id": "s2", "company_name": "Verrerie Est", "compatibility": 50.4, "status": "new"},
    ],
    "total": 2,
}


@pytest.fixture
def view(client, cache, notifier) -> SuggestionsView:
    return SuggestionsView(client, cache, notifier)


def test_list_is_normalized_and_cached(view, session) -> None:
    session.add("GET", "/suggestions", LIST)

    first = view.suggestions()
    second = view.suggestions()

    assert [s.company for s in first.data.suggestions] == ["Recyclage Sud", "Verrerie Est"]
    assert first.data.suggestions[1].compatibility == 50
    assert second.data is first.data
    assert len(session.calls) == 1
    assert [s.id for s in view.filtered("medium")] == ["s2"]


def test_ignore_failure_restores_list_and_notifies(view, session, cache, notifier) -> None:
    session.add("GET", "/suggestions", LIST)
    before = view.suggestions().data
    session.add("POST", "/suggestions/s1/ignore", {"error": "Suggestion verrouillée"}, status=500)

    with pytest.raises(ApiError):
        view.ignore("s1")

    assert cache.get(keys.suggestions_list()) == before
    assert notifier.messages("error") == ["Erreur lors de l'action"]
    assert cache.get_entry(keys.suggestions_list()).is_stale


def test_ignore_removes_card_and_refreshes_stats(view, session, cache, notifier) -> None:
    session.add("GET", "/suggestions", LIST)
    view.suggestions()
    cache.set(keys.suggestions_stats(), None)
    session.add("POST", "/suggestions/s1/ignore", {"success": True})

    view.ignore("s1")

    assert [s.id for s in cache.get(keys.suggestions_list()).suggestions] == ["s2"]
    assert cache.get_entry(keys.suggestions_stats()).is_stale
    assert notifier.messages("success") == ["Suggestion ignorée"]


def test_ignore_without_loaded_list_keeps_it_unloaded(view, session, cache) -> None:
    session.add("POST", "/suggestions/9/ignore", {"success": True})

    view.ignore("9")

    assert cache.get_entry(keys.suggestions_list()).status == "empty"
    session.add("GET", "/suggestions", LIST)
    assert len(view.suggestions().data.suggestions) == 2


def test_save_marks_card_as_saved(view, session, cache) -> None:
    session.add("GET", "/suggestions", LIST)
    view.suggestions()
    session.add("POST", "/suggestions/s2/save", {"success": True})

    view.save("s2")

    statuses = {s.id: s.status for s in cache.get(keys.suggestions_list()).suggestions}
    assert statuses == {"s1": "nouveau", "s2": "sauvegardé"}


def test_contact_sends_preferences_and_invalidates(view, session, cache, notifier) -> None:
    cache.set(keys.suggestions_list(), None)
    session.add("POST", "/suggestions/s1/contact", {"success": True})

    view.contact("s1", "Bonjour", "email")

    assert session.calls[0]["json"] == {"message": "Bonjour", "preferredContactMethod": "email"}
    assert cache.get_entry(keys.suggestions_list()).is_stale
    assert notifier.messages("success") == ["Demande de contact envoyée avec succès"]


def test_dashboard_reports_first_error(client, session, cache) -> None:
    dashboard = DashboardView(client, cache)
    session.add("GET", "/dashboard/stats", {"total": 3})
    session.add("GET", "/user/companies", {"error": "indisponible"}, status=503)
    session.add("GET", "/user/completion", {"percent": 60})

    state = dashboard.load_all()

    assert state.stats == {"total": 3}
    assert state.completion == {"percent": 60}
    assert state.companies is None
    assert state.error.status == 503
    assert session.paths("GET").count("/user/companies") == 3
    assert not state.loading


def test_new_filter_uses_creation_date(view, session) -> None:
    session.add(
        "GET", "/suggestions",
        [
            {"id": "recent", "createdAt": "2024-05-19T08:00:00Z"},
            {"id": "old", "createdAt": "2024-04-01T08:00:00Z"},
        ],
    )
    now = datetime(2024, 5, 20, tzinfo=timezone.utc)

    assert [s.id for s in view.filtered("new", now)] == ["recent"]
