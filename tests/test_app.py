from types import SimpleNamespace

from fastapi.testclient import TestClient

import main
from splittea.bot.states import Start

CHAT = 1001


def test_lifespan_closes_sessions_and_ledger(monkeypatch, flaky_repo, manager, say):
    monkeypatch.setattr(main, "settings", SimpleNamespace(telegram_bot_token=None))
    monkeypatch.setattr(main, "get_repo", lambda: flaky_repo)
    monkeypatch.setattr(main, "get_session_manager", lambda: manager)

    say("/creategroup")
    assert manager.active_sessions == 1

    with TestClient(main.app) as client:
        assert main.app.state.bot is None
        assert client.get("/health").json() == {"status": "ok"}
        assert "close" not in flaky_repo.calls

    assert manager.active_sessions == 0
    assert manager.state_of(CHAT) == Start()
    assert flaky_repo.calls[-1] == "close"
