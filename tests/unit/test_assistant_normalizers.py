from datetime import datetime, timezone

from ecoconnect_client.models.schemas import ButtonSegment, LinkSegment, TextSegment
from ecoconnect_client.normalizers.assistant import (
    EMPTY_MESSAGE_TEXT,
    message_signals_rate_limit,
    normalize_assistant_message,
    normalize_message_list,
    normalize_updates,
    parse_retry_after,
)

NOW = 1_700_000_000.0


def test_empty_message_gets_placeholder_segment() -> None:
    message = normalize_assistant_message({"id": "m1", "content": ""})

    assert len(message.content) == 1
    assert message.content[0].text == EMPTY_MESSAGE_TEXT
    assert normalize_assistant_message({}) is None


def test_segments_from_list_and_json_string() -> None:
    mixed = normalize_assistant_message(
        {"content": [{"type": "link", "text": "Voir", "href": "/x"}, "Bonjour"]}
    )
    encoded = normalize_assistant_message(
        {"content": '[{"type": "button", "label": "Go", "payload": {"a": 1}}]'}
    )

    assert mixed.content == [LinkSegment(text="Voir", href="/x"), TextSegment(text="Bonjour")]
    assert encoded.content == [ButtonSegment(text="Go", payload={"a": 1})]


def test_text_field_survives_next_to_buttons() -> None:
    message = normalize_assistant_message(
        {"content": [{"type": "button", "label": "Go"}], "text": "Bonjour"}
    )

    assert message.content == [TextSegment(text="Bonjour"), ButtonSegment(text="Go")]


def test_role_aliases_and_defaults() -> None:
    assert normalize_assistant_message({"content": "x", "role": "human"}).role == "user"
    assert normalize_assistant_message({"content": "x", "role": "robot"}).role == "assistant"
    assert normalize_assistant_message("hello", index=4).id == "msg-4"


def test_message_list_is_sorted_by_creation() -> None:
    messages = normalize_message_list(
        {
            "messages": [
                {"id": "b", "content": "2", "createdAt": "2024-01-02T00:00:00Z"},
                {"id": "a", "content": "1", "createdAt": "2024-01-01T00:00:00Z"},
            ]
        }
    )

    assert [m.id for m in messages] == ["a", "b"]


def test_updates_read_status_and_retry_after() -> None:
    updates = normalize_updates(
        {
            "data": {
                "messages": [{"id": "m", "content": "ok"}],
                "status": "rate_limited",
                "retryAfter": 30,
            }
        }
    )

    assert [m.id for m in updates.messages] == ["m"]
    assert updates.status == "rate_limited"
    assert updates.retry_after == 30


def test_parse_retry_after_magnitudes() -> None:
    assert parse_retry_after(30, NOW) == NOW + 30
    assert parse_retry_after(5000, NOW) == NOW + 5000
    assert parse_retry_after(20000, NOW) == NOW + 20
    assert parse_retry_after(1_700_000_090_000, NOW) == 1_700_000_090
    assert parse_retry_after("120", NOW) == NOW + 120


def test_parse_retry_after_edge_values() -> None:
    iso = datetime(2024, 1, 1, tzinfo=timezone.utc)

    assert parse_retry_after(0, NOW) == NOW
    assert parse_retry_after(-5, NOW) == NOW
    assert parse_retry_after("garbage", NOW) == NOW + 60
    assert parse_retry_after(None, NOW) is None
    assert parse_retry_after("2024-01-01T00:00:00Z", NOW) == iso.timestamp()


def test_rate_limit_detection_from_status_or_text() -> None:
    by_status = normalize_assistant_message({"content": "x", "status": "rate_limited"})
    by_text = normalize_assistant_message({"content": "Capacité Mistral atteinte"})
    plain = normalize_assistant_message({"content": "Voici vos partenaires"})

    assert message_signals_rate_limit(by_status)
    assert message_signals_rate_limit(by_text)
    assert not message_signals_rate_limit(plain)
