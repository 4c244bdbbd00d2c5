import asyncio

import pytest

from splittea.bot.session import SessionManager
from splittea.db.repository import LedgerRepository
from splittea.models.schemas import IncomingMessage

CHAT = 1001
ALICE = "@alice"


class FailingRepository:
    """Wraps a real repository and fails the named methods on demand."""

    def __init__(self, repo: LedgerRepository):
        self._repo = repo
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def __getattr__(self, name):
        target = getattr(self._repo, name)

        def call(*args):
            self.calls.append(name)
            if name in self.failing:
                raise OSError(f"{name}: disk unavailable")
            return target(*args)

        call.__name__ = name
        return call


@pytest.fixture
def repo(tmp_path):
    repository = LedgerRepository(str(tmp_path / "ledger.json"))
    yield repository
    repository.close()


@pytest.fixture
def flaky_repo(repo):
    return FailingRepository(repo)


@pytest.fixture
def manager(flaky_repo):
    return SessionManager(flaky_repo)


@pytest.fixture
def say(manager):
    """Send messages to one chat in order and collect the replies."""

    def _say(*texts: str, sender: str | None = ALICE, chat=CHAT) -> list[str]:
        async def run():
            replies = []
            for text in texts:
                message = IncomingMessage(session_id=chat, sender=sender, text=text)
                replies.append(await manager.handle(message))
            return replies

        return asyncio.run(run())

    return _say
