from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Account Ledger API"
    database_url: str = Field(
        validation_alias=AliasChoices("LEDGER_DATABASE_URL", "DB_URL"),
    )
    log_level: str = "INFO"
    echo_sql: bool = False
    account_locks: bool = True
    lock_timeout_seconds: float = Field(default=10.0, gt=0)
    statement_timeout_seconds: float = Field(default=15.0, gt=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LEDGER_",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
