from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven configuration for the WorkTrack web UI."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "WorkTrack"
    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent)
    TEMPLATES_DIR: Path | None = None
    STATIC_DIR: Path | None = None
    TZ: str = "Europe/Rome"
    DEFAULT_LOCALE: str = "it-IT"
    LOG_LEVEL: str = "INFO"

    API_BASE_URL: str = Field(
        default="http://localhost:5000",
        validation_alias=AliasChoices("WORKTRACK_API_BASE_URL", "API_BASE_URL"),
    )
    API_TIMEOUT_SECONDS: float = 10.0

    APP_SECRET: str = Field(
        default="dev-insecure-secret-change-me",
        validation_alias=AliasChoices("WORKTRACK_APP_SECRET", "APP_SECRET", "SESSION_SECRET"),
    )
    SESSION_COOKIE_NAME: str = "wt_session"
    SESSION_MAX_AGE: int = 60 * 60 * 24 * 7
    HTTPS_ONLY: bool = False

    # None keeps cached queries until they are invalidated explicitly.
    CACHE_TTL_SECONDS: float | None = 60.0

    MOBILE_BREAKPOINT: int = 768
    ANNUAL_VACATION_DAYS: int = 25

    @field_validator("API_BASE_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    @field_validator("CACHE_TTL_SECONDS", mode="before")
    @classmethod
    def parse_cache_ttl(cls, value: Any) -> Any:
        if value in ("", "none", "None", "infinity"):
            return None
        return value

    @property
    def templates_dir(self) -> Path:
        return self.TEMPLATES_DIR if self.TEMPLATES_DIR is not None else self.BASE_DIR / "templates"

    @property
    def static_dir(self) -> Path:
        return self.STATIC_DIR if self.STATIC_DIR is not None else self.BASE_DIR / "static"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    if settings.TEMPLATES_DIR is None:
        settings.TEMPLATES_DIR = settings.BASE_DIR / "templates"
    if settings.STATIC_DIR is None:
        settings.STATIC_DIR = settings.BASE_DIR / "static"
    return settings


settings = get_settings()


def settings_for(request: Any) -> AppSettings:
    """Settings the running app was created with, falling back to the environment ones."""

    app = request.scope.get("app")
    cfg = getattr(getattr(app, "state", None), "settings", None)
    return cfg if isinstance(cfg, AppSettings) else settings
