from pathlib import Path

import pytest

from ecoconnect_client.cache import keys
from ecoconnect_client.errors import ApiError
from ecoconnect_client.models.schemas import UploadFile
from ecoconnect_client.views.company import CompanyProfileView
from ecoconnect_client.views.dashboard import DashboardView
from ecoconnect_client.views.imports import ImportView


@pytest.fixture
def view(client, cache, notifier) -> ImportView:
    return ImportView(client, cache, notifier)


def _prefill(cache) -> None:
    for key in (
        keys.dashboard_stats(),
        keys.dashboard_completion(),
        keys.company_profile(),
        keys.company_section("productions"),
        keys.import_history(30),
        keys.import_profile_summary(),
        keys.import_stats(),
        keys.suggestions_list(),
        keys.assistant_templates(),
    ):
        cache.set(key, {"cached": True})


def test_sync_invalidates_dashboard_company_history_and_summary(view, session, cache, notifier) -> None:
    _prefill(cache)
    session.add(
        "POST", "/import/analysis/an-1/sync",
        {"data": {"syncedItems": {"productions": 3, "wastes": 1, "needs": 2}}},
    )

    result = view.sync("an-1")

    assert result.total == 6
    assert notifier.messages("success") == [
        "6 éléments synchronisés (prod: 3, déchets: 1, besoins: 2)"
    ]
    stale = {key for key in cache.keys() if cache.get_entry(key).is_stale}
    assert stale == {
        keys.dashboard_stats(),
        keys.dashboard_completion(),
        keys.company_profile(),
        keys.company_section("productions"),
        keys.import_history(30),
        keys.import_profile_summary(),
    }


def test_empty_sync_reports_no_new_items(view, session, notifier) -> None:
    session.add("POST", "/import/analysis/an-2/sync", {"success": True})

    result = view.sync("an-2")

    assert result.total == 0
    assert notifier.messages("success") == [
        "Synchronisation terminée (aucun nouvel élément détecté)"
    ]


def test_refetch_after_sync_reads_fresh_profile(view, session, cache, notifier) -> None:
    company = CompanyProfileView(view.client, cache, notifier)
    dashboard = DashboardView(view.client, cache)
    session.add("GET", "/company/profile", {"company": {"name": "Avant"}})
    session.add("GET", "/company/profile", {"company": {"name": "Après"}})
    session.add("GET", "/dashboard/stats", {"total": 1})
    session.add("POST", "/import/analysis/an-3/sync", {"productions": 1})

    assert company.profile().data["general"]["nom_entreprise"] == "Avant"
    assert dashboard.stats().data == {"total": 1}
    view.sync("an-3")

    assert company.profile().data["general"]["nom_entreprise"] == "Après"
    dashboard.stats()
    assert session.paths("GET").count("/company/profile") == 2
    assert session.paths("GET").count("/dashboard/stats") == 2


def test_upload_mapping_and_analysis_messages(view, session, cache, notifier) -> None:
    cache.set(keys.import_stats(), {})
    session.add("POST", "/import/upload", {"fileId": "f-1"})
    session.add("POST", "/import/f-1/map", {"data": {"columns": ["nom", "quantite"], "preview": []}})
    session.add("POST", "/import/f-1/analyze", {"data": {"itemsAnalyzed": 42}})

    view.upload(UploadFile("stock.xlsx", b"PK", "application/vnd.ms-excel"))
    mapping = view.map_columns("f-1")
    view.run_analysis("f-1")

    assert mapping.column_count == 2
    assert notifier.messages("success") == [
        "Fichier importé avec succès",
        "2 colonnes détectées automatiquement",
        "Analyse IA terminée : 42 lignes traitées",
    ]
    assert notifier.messages("warning") == ["Aucun aperçu de lignes renvoyé par l'API."]
    assert session.calls[0]["files"]["file"][0] == "stock.xlsx"
    assert cache.get_entry(keys.import_stats()).is_stale


def test_failed_sync_notifies_and_keeps_cache_fresh(view, session, cache, notifier) -> None:
    _prefill(cache)
    session.add("POST", "/import/analysis/an-4/sync", {"error": "Analyse introuvable"}, status=404)

    with pytest.raises(ApiError):
        view.sync("an-4")

    assert notifier.messages("error") == ["Analyse introuvable"]
    assert not any(cache.get_entry(key).is_stale for key in cache.keys())


def test_template_download_written_to_directory(view, session, notifier, tmp_path: Path) -> None:
    session.add("GET", "/import/template", content=b"xlsx-bytes")

    download = view.download_template(tmp_path)

    assert (tmp_path / "modele_import_ecopaluds.xlsx").read_bytes() == b"xlsx-bytes"
    assert download.filename == "modele_import_ecopaluds.xlsx"
    assert notifier.messages("success") == ["Modèle téléchargé"]
