from functools import lru_cache

from splittea.bot.session import SessionManager
from splittea.config import get_settings
from splittea.db.repository import LedgerRepository


@lru_cache
def get_repo() -> LedgerRepository:
    return LedgerRepository(get_settings().db_path)


@lru_cache
def get_session_manager() -> SessionManager:
    return SessionManager(get_repo(), idle_minutes=get_settings().session_idle_minutes)
