"""
Runtime configuration for the denial engine and its server.

Uses ``pydantic_settings.BaseSettings`` for environment variable
binding, type coercion and validation.  A ``.env`` file in the
working directory is loaded by the server entry point.
"""

from __future__ import annotations

import functools
import pathlib

import pydantic
import pydantic_settings

from guardr.utils import logger

log = logger.create_logger("Config")

_DEFAULT_STORE_DIR = pathlib.Path.cwd() / ".cache" / "learning"


class Settings(pydantic_settings.BaseSettings):
    """Engine and server settings.

    Attributes:
        auto_run: Start the auto-run watcher after each navigation.
        deadline_seconds: Wall-clock budget for one run.
        recency_window_seconds: How long after its reference time a
            consent surface may first appear and still qualify.
        watch_timeout_seconds: Lifetime of the auto-run watcher.
        store_dir: Directory holding learned patterns.
        headless: Launch the browser without a window.
        host: Address uvicorn binds to.
        port: Port uvicorn listens on.
        environment: ``development`` or ``production``.
    """

    model_config = pydantic_settings.SettingsConfigDict(populate_by_name=True, extra="ignore")

    auto_run: bool = pydantic.Field(default=False, validation_alias="GUARDR_AUTO_RUN")
    deadline_seconds: float = pydantic.Field(default=30.0, gt=0, validation_alias="GUARDR_DEADLINE_SECONDS")
    recency_window_seconds: float = pydantic.Field(default=60.0, gt=0, validation_alias="GUARDR_RECENCY_WINDOW_SECONDS")
    watch_timeout_seconds: float = pydantic.Field(default=15.0, gt=0, validation_alias="GUARDR_WATCH_TIMEOUT_SECONDS")
    store_dir: pathlib.Path = pydantic.Field(default=_DEFAULT_STORE_DIR, validation_alias="GUARDR_STORE_DIR")
    headless: bool = pydantic.Field(default=True, validation_alias="GUARDR_HEADLESS")
    host: str = pydantic.Field(default="0.0.0.0", validation_alias="UVICORN_HOST")
    port: int = pydantic.Field(default=3001, validation_alias="UVICORN_PORT")
    environment: str = pydantic.Field(default="development", validation_alias="ENVIRONMENT")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read once from the environment."""
    settings = Settings()
    log.debug(
        "Settings loaded",
        {
            "autoRun": settings.auto_run,
            "deadlineSeconds": settings.deadline_seconds,
            "storeDir": str(settings.store_dir),
        },
    )
    return settings
