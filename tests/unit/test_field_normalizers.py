from datetime import datetime, timezone

from ecoconnect_client.normalizers.fields import (
    coerce_date,
    coerce_number,
    coerce_percent,
    coerce_string,
    ensure_array,
    extract_array,
    extract_number,
    parse_pagination,
    pick_first,
    string_list,
    unwrap_data,
)


def test_coerce_number_accepts_french_formatted_strings() -> None:
    assert coerce_number("1 234,5") == 1234.5
    assert coerce_number("+12%") == 12
    assert coerce_number(7) == 7
    assert coerce_number({"count": "3"}) == 3


def test_coerce_number_rejects_garbage() -> None:
    assert coerce_number("") is None
    assert coerce_number("abc") is None
    assert coerce_number(float("nan")) is None
    assert coerce_number(None) is None
    assert coerce_number([1]) is None


def test_coerce_percent_scales_ratios() -> None:
    assert coerce_percent(0.42) == 42
    assert coerce_percent("0,5") == 50
    assert coerce_percent(73) == 73
    assert coerce_percent(None) is None


def test_coerce_string_handles_objects_and_numbers() -> None:
    assert coerce_string({"label": "Chimie"}) == "Chimie"
    assert coerce_string({"value": 3}) == "3"
    assert coerce_string(4.0) == "4"
    assert coerce_string([1, 2]) is None


def test_coerce_date_variants() -> None:
    expected = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert coerce_date("2024-01-02T03:04:05Z") == expected
    assert coerce_date(expected.timestamp()) == expected
    assert coerce_date(expected.timestamp() * 1000) == expected
    assert coerce_date("not a date") is None
    assert coerce_date("") is None


def test_pick_first_skips_empty_candidates() -> None:
    source = {"name": "", "title": None, "meta": {"label": "Titre"}}
    assert pick_first(source, ["name", "title", "meta.label"]) == "Titre"
    assert pick_first(source, ["missing"], "default") == "default"


def test_unwrap_and_ensure_array() -> None:
    assert unwrap_data({"data": {"result": [1, 2]}}) == [1, 2]
    assert unwrap_data(None) is None
    assert ensure_array({"a": 1, "b": 2}) == [1, 2]
    assert ensure_array("text") == []


def test_extract_array_prefers_keys_then_any_list() -> None:
    payload = {"data": {"meta": {"count": 2}, "history": [{"id": 1}], "other": [9]}}
    assert extract_array(payload, ["history"]) == [{"id": 1}]
    assert extract_array({"wrapper": {"rows": [1]}}) == [1]
    assert extract_array({}) == []


def test_extract_number_ignores_booleans() -> None:
    assert extract_number({"items": True, "rows": "12"}, ["items", "rows"]) == 12
    assert extract_number({}, ["rows"]) == 0


def test_string_list_from_mixed_values() -> None:
    assert string_list("a; b ;") == ["a", "b"]
    assert string_list([{"label": "x"}, "y", {"other": 1}, " "]) == ["x", "y"]


def test_parse_pagination_defaults() -> None:
    pagination = parse_pagination({"meta": {"page": 2, "perPage": 10, "total": 35}}, 10)
    assert pagination.page == 2
    assert pagination.per_page == 10
    assert pagination.total_items == 35
    assert pagination.total_pages == 4
