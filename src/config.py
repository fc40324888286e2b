from __future__ import annotations

from functools import cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DB_FILE = ARTIFACTS_DIR / "multisend.db"


class AppSettings(BaseSettings):
    db_file: Path = DB_FILE
    fee_bps: int = Field(default=5, ge=0, le=10_000)
    owner: str | None = None
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="MULTISEND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@cache
def config() -> AppSettings:
    return AppSettings()
