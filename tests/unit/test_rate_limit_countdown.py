import pytest

from ecoconnect_client.cache import keys
from ecoconnect_client.errors import ApiError, ValidationError
from ecoconnect_client.views.assistant import AssistantView, RateLimitCountdown


def test_countdown_reaches_zero(clock) -> None:
    countdown = RateLimitCountdown(clock)

    assert countdown.start(30) == 30
    clock.advance(10.5)
    assert countdown.remaining == 20
    clock.advance(19.5)
    assert countdown.remaining == 0
    assert not countdown.active


def test_countdown_defaults_and_reset(clock) -> None:
    countdown = RateLimitCountdown(clock)
    assert countdown.remaining == 0

    assert countdown.start(None) == 60
    assert countdown.start("not a date") == 60
    countdown.reset()
    assert not countdown.active


def test_rate_limited_send_blocks_until_countdown_elapses(client, session, cache, notifier, clock) -> None:
    view = AssistantView(client, cache, notifier, clock=clock)
    session.add("POST", "/assistant/messages", {"error": "Trop de requêtes", "retryAfter": 30}, status=429)

    with pytest.raises(ApiError):
        view.send_message("c1", "Bonjour")

    assert view.state == "rate_limited"
    assert not view.can_send()
    assert notifier.messages("warning") == ["Limite atteinte. Réessayez dans 30 secondes."]
    assert notifier.messages("error") == []

    clock.advance(12)
    with pytest.raises(ValidationError, match="Réessayez dans 18 secondes"):
        view.send_message("c1", "Encore")
    assert len(session.calls) == 1

    clock.advance(18)
    assert view.can_send()


def test_retry_after_header_is_used_when_body_has_none(client, session, cache, notifier, clock) -> None:
    view = AssistantView(client, cache, notifier, clock=clock)
    session.add("POST", "/assistant/messages", {"error": "slow"}, status=429, headers={"Retry-After": "15"})

    with pytest.raises(ApiError):
        view.send_message("c1", "Bonjour")

    assert view.countdown.remaining == 15


def test_empty_message_is_refused(client, session, cache, notifier) -> None:
    view = AssistantView(client, cache, notifier)

    with pytest.raises(ValidationError, match="vide"):
        view.send_message("c1", "   ")

    assert session.calls == []


def test_successful_send_invalidates_conversation(client, session, cache, notifier) -> None:
    view = AssistantView(client, cache, notifier)
    cache.set(keys.assistant_messages("c1"), [])
    cache.set(keys.assistant_conversations(), [])
    session.add("POST", "/assistant/messages", {"id": "m1"})

    view.send_message("c1", "  Bonjour  ", metadata={"source": "cli"})

    assert session.calls[0]["json"] == {
        "conversationId": "c1",
        "message": "Bonjour",
        "metadata": {"source": "cli"},
    }
    assert cache.get_entry(keys.assistant_messages("c1")).is_stale
    assert cache.get_entry(keys.assistant_conversations()).is_stale


def test_other_send_failures_use_error_toast(client, session, cache, notifier) -> None:
    view = AssistantView(client, cache, notifier)
    session.add("POST", "/assistant/messages", status=500)

    with pytest.raises(ApiError):
        view.send_message("c1", "Bonjour")

    assert notifier.messages("error") == ["Impossible d'envoyer le message pour le moment"]
    assert view.can_send()
