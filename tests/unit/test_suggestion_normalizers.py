from datetime import datetime, timedelta, timezone

from ecoconnect_client.normalizers.suggestions import (
    filter_suggestions,
    normalize_suggestion_filters,
    normalize_suggestion_list,
    normalize_suggestion_stats,
    transform_suggestion,
    translate_status,
)

NOW = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)


def test_translate_status_labels() -> None:
    assert translate_status("new") == "nouveau"
    assert translate_status("saved") == "sauvegardé"
    assert translate_status("ignored") == "ignoré"
    assert translate_status("contacted") == "contacté"
    assert translate_status("archived") == "archived"
    assert translate_status(None) is None


def test_transform_suggestion_reads_nested_company() -> None:
    suggestion = transform_suggestion(
        {
            "interaction_id": 42,
            "target_company": {"name": "Recyclage Sud", "sector": "Plasturgie"},
            "compatibility_score": "87 %",
            "distance_km": "3,5",
            "status": "saved",
            "match_reasons": [{"reason": "Déchets compatibles"}, "Proximité"],
        }
    )

    assert suggestion.id == "42"
    assert suggestion.company == "Recyclage Sud"
    assert suggestion.activity == "Plasturgie"
    assert suggestion.compatibility == 87
    assert suggestion.distance == 3.5
    assert suggestion.status == "sauvegardé"
    assert suggestion.reasons == ["Déchets compatibles", "Proximité"]


def test_transform_suggestion_defaults() -> None:
    suggestion = transform_suggestion({}, index=3)

    assert suggestion.id == "suggestion-3"
    assert suggestion.company == "Entreprise"
    assert suggestion.compatibility == 0
    assert suggestion.status == "nouveau"
    assert transform_suggestion("nope") is None


def test_compatibility_is_already_a_percentage() -> None:
    low = transform_suggestion({"id": 1, "compatibility": 1})
    capped = transform_suggestion({"id": 2, "score": 130})
    negative = transform_suggestion({"id": 3, "match_score": "-4"})

    assert low.compatibility == 1
    assert capped.compatibility == 100
    assert negative.compatibility == 0


def test_normalize_suggestion_list_shapes() -> None:
    wrapped = normalize_suggestion_list({"data": {"suggestions": [{"id": 1}, {"id": 2}]}})
    flat = normalize_suggestion_list([{"id": 1}])
    keyed = normalize_suggestion_list({"interactions": [{"id": 1}], "total": "9"})

    assert [s.id for s in wrapped.suggestions] == ["1", "2"]
    assert wrapped.total == 2
    assert len(flat.suggestions) == 1
    assert keyed.total == 9
    assert normalize_suggestion_list(None).suggestions == []


def test_normalize_suggestion_stats() -> None:
    stats = normalize_suggestion_stats({"stats": {"total": 12, "new": "4", "high": 2}})

    assert (stats.active, stats.new_this_week, stats.pending) == (12, 4, 2)


def test_normalize_suggestion_filters_keeps_facets() -> None:
    filters = normalize_suggestion_filters(
        {"filters": {"sectors": ["Chimie", "Logistique"], "label": "ignored"}}
    )

    assert list(filters) == ["sectors"]
    assert [entry.value for entry in filters["sectors"]] == ["Chimie", "Logistique"]


def test_filter_suggestions_by_bucket() -> None:
    suggestions = normalize_suggestion_list(
        [
            {"id": "a", "compatibility": 90, "createdAt": (NOW - timedelta(days=1)).isoformat()},
            {"id": "b", "compatibility": 55, "createdAt": (NOW - timedelta(days=30)).isoformat()},
            {"id": "c", "compatibility": 10},
        ]
    ).suggestions

    assert [s.id for s in filter_suggestions(suggestions, "high")] == ["a"]
    assert [s.id for s in filter_suggestions(suggestions, "medium")] == ["b"]
    assert [s.id for s in filter_suggestions(suggestions, "new", NOW)] == ["a"]
    assert len(filter_suggestions(suggestions, "all")) == 3
