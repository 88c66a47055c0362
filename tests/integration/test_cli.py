import dataclasses
from pathlib import Path

import pytest

from ecoconnect_client.app import EcoConnectApp
from ecoconnect_client.cache import keys
from ecoconnect_client.cli import main
from ecoconnect_client.storage.kv_store import AUTH_TOKEN_KEY

BASE_URL = "https://api.test"


@pytest.fixture
def app_factory(tmp_path: Path, monkeypatch, session):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ECOCONNECT_DEBUG", raising=False)
    built = []

    def factory(config):
        config = dataclasses.replace(
            config,
            api_base_url=BASE_URL,
            token_store_path=tmp_path / "session.csv",
            poll_interval=0,
        )
        app = EcoConnectApp.from_config(config, session=session)
        app.token_store.set(AUTH_TOKEN_KEY, "cli-token")
        built.append(app)
        return app

    factory.built = built
    return factory


def test_suggestions_command_lists_filtered_cards(app_factory, session, capsys) -> None:
    session.add(
        "GET", "/suggestions",
        [
            {"id": 1, "company_name": "Recyclage Sud", "compatibility": 80, "distance": 2},
            {"id": 2, "company_name": "Verrerie Est", "compatibility": 20},
        ],
    )

    exit_code = main(["suggestions", "--filter", "high"], app_factory=app_factory)

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Suggestions: 1 (filter: high)" in out
    assert "Recyclage Sud" in out
    assert "distance=2 km" in out
    assert "Verrerie Est" not in out


def test_ignore_command_prints_notification(app_factory, session, capsys) -> None:
    session.add("POST", "/suggestions/7/ignore", {"success": True})

    exit_code = main(["ignore", "7"], app_factory=app_factory)

    assert exit_code == 0
    assert "[success] Suggestion ignorée" in capsys.readouterr().out


def test_rejected_token_fails_and_clears_session(app_factory, session, capsys) -> None:
    session.add("GET", "/suggestions/stats", {"error": "Token expiré"}, status=401)

    exit_code = main(["stats"], app_factory=app_factory)

    app = app_factory.built[0]
    assert exit_code == 1
    assert "ERROR: Token expiré" in capsys.readouterr().out
    assert not app.account.is_authenticated()
    assert app.cache.keys() == []


def test_assistant_command_waits_for_answer(app_factory, session, capsys) -> None:
    session.add("POST", "/assistant/messages", {"id": "u1"})
    session.add(
        "GET", "/assistant/conversations/c1/updates",
        {"messages": [{"id": "a1", "role": "assistant", "content": "Trois partenaires trouvés"}]},
    )

    exit_code = main(["assistant", "Qui recycle le verre ?", "--conversation", "c1"], app_factory=app_factory)

    assert exit_code == 0
    assert "Trois partenaires trouvés" in capsys.readouterr().out
    assert session.calls[0]["json"]["message"] == "Qui recycle le verre ?"
    assert session.calls[1]["params"]["since"].endswith("+00:00")


def test_logout_command(app_factory, session, capsys) -> None:
    session.add("POST", "/logout", {"ok": True})

    exit_code = main(["logout"], app_factory=app_factory)

    app = app_factory.built[0]
    assert exit_code == 0
    assert "Logged out (server status: 200)" in capsys.readouterr().out
    assert app.cache.get(keys.auth_user()) is None
    assert app.token_store.get(AUTH_TOKEN_KEY) is None


def test_directory_command_prints_companies(app_factory, session, capsys) -> None:
    session.add(
        "GET", "/company/companies",
        {"success": True, "data": {"items": [{"id": 3, "name": "Verrerie Sud", "distance": 4}], "total": 1}},
    )

    exit_code = main(["directory", "--search", "verre", "--sector", "chimie"], app_factory=app_factory)

    out = capsys.readouterr().out
    assert exit_code == 0
    assert session.calls[0]["params"]["sectors"] == "chimie"
    assert "Companies: 1 (page 1/1)" in out
    assert "3 | Verrerie Sud | - | distance=4 km" in out
