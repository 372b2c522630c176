from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def default_config_path() -> Path:
    return Path.home() / ".cpr" / "config.toml"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CPR_", case_sensitive=False)

    config_path: Path = default_config_path()
    log_level: str = "WARNING"
    git_executable: str = "git"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
