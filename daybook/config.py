"""Settings read from environment variables prefixed with `DAYBOOK_`."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DAYBOOK_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    data_dir: Path = Field(default=Path("data"), description="Root of JSON file store")
    accounting_model: Literal["double", "simple"] = Field(
        default="double",
        description="Record fee payments as vouchers or as simple income entries",
    )
    cash_account: str = Field(default="Cash in Hand", description="Debited by fee receipts")
    fee_income_account: str = Field(
        default="Tuition Fees", description="Credited by fee receipts"
    )
    import_category: str = Field(
        default="Imported", description="Category for accounts created by import"
    )
    log_level: str = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None):
    settings = settings or get_settings()
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(settings.log_level.upper())
