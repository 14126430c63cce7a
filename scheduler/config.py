"""Runtime configuration read from ``SCHEDULER_*`` environment variables."""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel

_TRUTHY = {"1", "true", "yes", "on"}

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class Settings(BaseModel):
    database_url: str = "sqlite:///./scheduler.db"
    log_level: str = "INFO"
    sql_echo: bool = False
    seed_demo_data: bool = False


def _flag(raw: str | None) -> bool:
    return (raw or "").strip().lower() in _TRUTHY


def load_settings() -> Settings:
    """Build ``Settings`` from the environment, falling back to defaults."""
    defaults = Settings()
    return Settings(
        database_url=os.environ.get("SCHEDULER_DATABASE_URL", defaults.database_url),
        log_level=os.environ.get("SCHEDULER_LOG_LEVEL", defaults.log_level).upper(),
        sql_echo=_flag(os.environ.get("SCHEDULER_SQL_ECHO")),
        seed_demo_data=_flag(os.environ.get("SCHEDULER_SEED_DEMO_DATA")),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")
