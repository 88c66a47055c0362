import copy

import pytest

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.optimistic import OptimisticMutation
from ecoconnect_client.errors import GENERIC_ERROR_MESSAGE, ApiError

SUGGESTIONS = [
    {"id": "1", "company": "Recyclage Sud", "status": "nouveau"},
    {"id": "2", "company": "Verrerie Est", "status": "nouveau"},
]


def drop(old, suggestion_id):
    return [item for item in old or [] if item["id"] != suggestion_id]


def test_prediction_is_visible_before_the_request(cache, notifier) -> None:
    key = keys.suggestions_list()
    cache.set(key, copy.deepcopy(SUGGESTIONS))
    seen_during_request = []

    def mutate(suggestion_id):
        seen_during_request.append(cache.get(key))
        return {"ok": True}

    ignore = OptimisticMutation(
        cache, key, mutate, predict=drop,
        success_message="Suggestion ignorée", notifier=notifier,
    )

    assert ignore("1") == {"ok": True}
    assert [item["id"] for item in seen_during_request[0]] == ["2"]
    assert [item["id"] for item in cache.get(key)] == ["2"]
    assert notifier.messages("success") == ["Suggestion ignorée"]
    assert cache.get_entry(key).is_stale


def test_failure_restores_snapshot_exactly(cache, notifier) -> None:
    key = keys.suggestions_list()
    cache.set(key, copy.deepcopy(SUGGESTIONS))
    rolled_back = []

    def mutate(suggestion_id):
        raise ApiError("refused", status=500, body={"error": "Refusé par le serveur"})

    ignore = OptimisticMutation(
        cache, key, mutate, predict=drop,
        rollback=lambda error, suggestion_id: rolled_back.append(suggestion_id),
        notifier=notifier,
    )

    with pytest.raises(ApiError):
        ignore("1")

    assert cache.get(key) == SUGGESTIONS
    assert rolled_back == ["1"]
    assert notifier.messages("error") == ["Refusé par le serveur"]
    assert notifier.messages("success") == []


def test_failure_without_prior_data_removes_entry(cache, notifier) -> None:
    key = keys.suggestions_list()

    def mutate():
        raise ApiError("down", status=503)

    mutation = OptimisticMutation(
        cache, key, mutate, predict=lambda old: ["guess"], notifier=notifier,
    )

    with pytest.raises(ApiError):
        mutation()

    assert key not in cache.keys()
    assert notifier.messages("error") == [GENERIC_ERROR_MESSAGE]


def test_empty_prediction_leaves_uncached_key_alone(cache, notifier) -> None:
    key = keys.suggestions_list()
    seen_during_request = []

    def mutate():
        seen_during_request.append(cache.get_entry(key).status)
        return {"ok": True}

    mutation = OptimisticMutation(cache, key, mutate, predict=lambda old: None, notifier=notifier)

    mutation()

    assert seen_during_request == ["empty"]
    assert key not in cache.keys()
    assert cache.get_entry(key).status == "empty"


def test_rate_limited_failure_shows_no_toast(cache, notifier) -> None:
    key = keys.suggestions_list()
    cache.set(key, copy.deepcopy(SUGGESTIONS))

    def mutate(suggestion_id):
        raise ApiError("slow down", status=429)

    ignore = OptimisticMutation(
        cache, key, mutate, predict=drop,
        error_message="Erreur", notifier=notifier,
    )

    with pytest.raises(ApiError):
        ignore("2")

    assert cache.get(key) == SUGGESTIONS
    assert notifier.items == []


def test_commit_replaces_prediction_with_server_value(cache, notifier) -> None:
    key = keys.auth_user()
    cache.set(key, {"user": {"first_name": "Ana"}})

    mutation = OptimisticMutation(
        cache, key,
        mutate=lambda fields: {"user": {"first_name": "Anaïs", "id": 3}},
        predict=lambda old, fields: {"user": {**old["user"], **fields}},
        commit=lambda current, result, fields: {"user": result["user"]},
        success_message=lambda result, fields: f"Bonjour {result['user']['first_name']}",
        notifier=notifier,
    )

    mutation({"first_name": "Anais"})

    assert cache.get(key) == {"user": {"first_name": "Anaïs", "id": 3}}
    assert notifier.messages() == ["Bonjour Anaïs"]


def test_related_keys_are_invalidated_even_on_failure(cache) -> None:
    key = keys.suggestions_list()
    cache.set(key, [])
    cache.set(keys.suggestions_stats(), {"total": 1})
    cache.set(keys.dashboard_stats(), {"total": 1})

    def mutate():
        raise ApiError("x", status=500)

    mutation = OptimisticMutation(
        cache, key, mutate, invalidate=[keys.suggestions_stats()],
    )

    with pytest.raises(ApiError):
        mutation()

    assert cache.get_entry(keys.suggestions_stats()).is_stale
    assert not cache.get_entry(keys.dashboard_stats()).is_stale


def test_error_message_callable_receives_error(cache, notifier) -> None:
    key = keys.suggestions_list()
    cache.set(key, [])

    def mutate(value):
        raise ApiError("x", status=500)

    mutation = OptimisticMutation(
        cache, key, mutate,
        error_message=lambda error, value: f"Echec {value} ({error.status})",
        notifier=notifier,
    )

    with pytest.raises(ApiError):
        mutation("a")

    assert notifier.messages("error") == ["Echec a (500)"]
