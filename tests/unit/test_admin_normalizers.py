from ecoconnect_client.normalizers.admin import (
    format_change_label,
    map_company,
    normalize_companies_payload,
    normalize_metrics_payload,
    normalize_status,
    normalize_system_stats_payload,
)


def test_normalize_status_tones() -> None:
    assert (normalize_status("APPROVED").label, normalize_status("APPROVED").tone) == (
        "Actif",
        "success",
    )
    assert normalize_status("awaiting_approval").tone == "pending"
    assert normalize_status("suspended").label == "Inactif"
    assert normalize_status("bloqué").label == "Refusé"

    missing = normalize_status(None)
    assert (missing.label, missing.tone, missing.value) == ("Inconnu", "inactive", None)

    other = normalize_status("weird")
    assert (other.label, other.tone) == ("weird", "inactive")


def test_format_change_label() -> None:
    assert format_change_label(percent=12.5, period="ce mois") == "+12,5% ce mois"
    assert format_change_label(percent=-3) == "\u22123%"
    assert format_change_label(numeric=0) == "0"
    assert format_change_label() == "Stable"
    assert format_change_label(period="ce mois") == "Stable ce mois"
    assert format_change_label(label="Fixe") == "Fixe"


def test_metrics_payload_flags_pending_moderation() -> None:
    metrics = normalize_metrics_payload(
        {
            "metrics": {
                "companies": {"total": 120, "changePercent": 0.125},
                "moderation": {"pending": 4},
            }
        }
    )

    assert metrics.companies.value == 120
    assert metrics.companies.change_label == "+12,5% ce mois"
    assert metrics.companies.change_type == "positive"
    assert metrics.moderation.change_type == "warning"
    assert metrics.connections.change_label == "Stable cette semaine"


def test_metrics_without_pending_keep_computed_trend() -> None:
    metrics = normalize_metrics_payload({"moderation": {"pending": 0}})

    assert metrics.moderation.change_type == "neutral"


def test_map_company_keeps_unparseable_dates_as_labels() -> None:
    row = map_company(
        {
            "company_id": 7,
            "company_name": "Boulangerie Paluds",
            "status": "pending",
            "created_at": "hier",
            "last_activity_at": "2024-02-01T10:00:00Z",
        }
    )

    assert row.id == "7"
    assert row.name == "Boulangerie Paluds"
    assert row.status == "En attente"
    assert row.created_at is None
    assert row.created_at_label == "hier"
    assert row.last_activity_at is not None
    assert row.last_activity_label is None


def test_companies_payload_with_filters() -> None:
    page = normalize_companies_payload(
        {
            "data": {
                "items": [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}],
                "meta": {"current_page": 1, "per_page": 2, "total": 5},
                "filters": {
                    "statuses": ["active", {"value": "pending", "label": "En attente"}],
                    "sectors": ["Chimie", "Chimie"],
                },
            }
        }
    )

    assert [row.id for row in page.items] == ["1", "2"]
    assert page.pagination.total_pages == 3
    assert [option.value for option in page.statuses] == ["active", "pending"]
    assert [option.value for option in page.sectors] == ["Chimie"]


def test_system_stats_picks_top_sector() -> None:
    stats = normalize_system_stats_payload(
        {
            "stats": {
                "sectors": {
                    "distribution": [
                        {"label": "Logistique", "percent": 20},
                        {"label": "Chimie", "percent": 45},
                    ]
                },
                "registrations": {"thisMonth": 8, "changePercent": -10},
            }
        }
    )
    cards = {card.key: card for card in stats.cards}

    assert cards["sectors"].value_label == "Chimie"
    assert cards["sectors"].change_label == "45% du total"
    assert cards["registrations"].value == 8
    assert cards["registrations"].change_label == "\u221210% vs mois dernier"
    assert cards["registrations"].change_type == "negative"
    assert cards["connections"].change_label == "Stable sur 30 jours"
