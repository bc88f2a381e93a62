"""Configuration models for the news aggregator."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, List, Set

from pydantic import (
    Field,
    PositiveFloat,
    PositiveInt,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
DEFAULT_SOURCES = [
    "livemint",
    "economic_times",
    "moneycontrol",
    "groww",
    "business_standard",
    "india_today",
]
KNOWN_SOURCES = frozenset(DEFAULT_SOURCES)


def _parse_json_list(value: Any, env_name: str) -> List[Any]:
    if value in (None, ""):
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{env_name} must be a JSON array.") from exc
        if not isinstance(parsed, list):
            raise ValueError(f"{env_name} must be a JSON array.")
        return parsed
    if isinstance(value, (list, tuple)):
        return list(value)
    raise ValueError(f"{env_name} must be a list.")


class Settings(BaseSettings):
    """Environment settings shared by ingestion, quotes and the API."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    database_dsn: str = Field(
        "sqlite:///./var/storage/news.db",
        alias="NEWS_DB_DSN",
        description="SQLAlchemy DSN for the articles store.",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        alias="INGESTION_REDIS_URL",
        description="Celery broker/backend Redis DSN.",
    )
    scrape_interval_minutes: PositiveInt = Field(
        15, alias="SCRAPE_INTERVAL_MINUTES", description="Periodic ingestion interval."
    )
    scrape_on_startup: bool = Field(
        True, alias="SCRAPE_ON_STARTUP", description="Run one ingestion when a worker starts."
    )
    source_timeout_seconds: PositiveFloat = Field(
        120.0, alias="SOURCE_TIMEOUT_SECONDS", description="Fan-in deadline for one ingestion cycle."
    )
    http_timeout_seconds: PositiveFloat = Field(
        10.0, alias="HTTP_TIMEOUT_SECONDS", description="Per-request HTTP timeout."
    )
    http_user_agent: str = Field(DEFAULT_USER_AGENT, alias="HTTP_USER_AGENT")
    scrape_page_delay_seconds: float = Field(
        1.0, alias="SCRAPE_PAGE_DELAY_SECONDS", ge=0, description="Delay between listing pages."
    )
    scrape_max_attempts: PositiveInt = Field(
        2, alias="SCRAPE_MAX_ATTEMPTS", description="Adapter attempts on transient errors."
    )
    news_sources: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SOURCES),
        alias="NEWS_SOURCES",
        description="Enabled source keys (JSON array).",
    )
    market_symbols: List[str] = Field(
        default_factory=lambda: ["^NSEI", "^BSESN"],
        alias="MARKET_SYMBOLS",
        description="Index symbols served by /market-indices (JSON array).",
    )
    quote_endpoint: str = Field(
        "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}?interval=1d&range=2d",
        alias="QUOTE_ENDPOINT",
    )
    quote_delay_seconds: float = Field(
        0.5, alias="QUOTE_DELAY_SECONDS", ge=0, description="Fixed delay between quote calls."
    )
    summary_max_sentences: PositiveInt = Field(5, alias="SUMMARY_MAX_SENTENCES")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        alias="CORS_ORIGINS",
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL", description="Root log level.")
    log_json: bool = Field(False, alias="LOG_JSON", description="Emit JSON log lines.")

    @field_validator("news_sources", mode="before")
    @classmethod
    def _parse_sources(cls, value: Any) -> List[Any]:
        return _parse_json_list(value, "NEWS_SOURCES")

    @field_validator("news_sources")
    @classmethod
    def _validate_sources(cls, value: List[str]) -> List[str]:
        keys = [item.strip().lower() for item in value]
        unknown = [key for key in keys if key not in KNOWN_SOURCES]
        if unknown:
            raise ValueError(f"Unknown news sources: {', '.join(unknown)}")
        return list(dict.fromkeys(keys))

    @field_validator("market_symbols", mode="before")
    @classmethod
    def _parse_symbols(cls, value: Any) -> List[Any]:
        return _parse_json_list(value, "MARKET_SYMBOLS")

    @field_validator("market_symbols")
    @classmethod
    def _validate_symbols(cls, value: List[str]) -> List[str]:
        seen: Set[str] = set()
        symbols: List[str] = []
        for raw in value:
            symbol = raw.strip().upper()
            if not symbol:
                raise ValueError("Market symbols cannot be blank.")
            if symbol in seen:
                raise ValueError(f"Duplicate market symbol: {symbol}")
            seen.add(symbol)
            symbols.append(symbol)
        return symbols

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: Any) -> List[Any]:
        return _parse_json_list(value, "CORS_ORIGINS")

    @field_validator("database_dsn")
    @classmethod
    def _validate_dsn(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError("NEWS_DB_DSN must be a valid DSN string.")
        return value

    @field_validator("quote_endpoint")
    @classmethod
    def _validate_quote_endpoint(cls, value: str) -> str:
        if "{symbol}" not in value:
            raise ValueError("QUOTE_ENDPOINT must contain a {symbol} placeholder.")
        return value


@lru_cache()
def get_settings() -> Settings:
    """Return a Settings instance built from the environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Environment validation failed: {exc}") from exc


def reset_settings_cache() -> None:
    """Clear the Settings LRU cache (for tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
