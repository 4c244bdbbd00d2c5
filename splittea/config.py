from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    telegram_bot_token: str = Field(
        default="", validation_alias=AliasChoices("telegram_bot_token", "bot_token")
    )
    db_path: str = Field(
        default="splittea_ledger.json",
        validation_alias=AliasChoices("db_path", "splittea_db"),
    )
    # 0 keeps sessions alive until /cancel or completion
    session_idle_minutes: int = 0
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
