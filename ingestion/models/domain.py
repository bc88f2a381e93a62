"""Domain DTOs for the ingestion pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ArticleDTO(BaseModel):
    """Normalized article as emitted by a source adapter."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1, description="Identity key across the store")
    source: str = Field(..., description="Human-readable source name, e.g. Livemint")
    content: str = ""
    description: str = ""
    image_url: Optional[str] = None
    published_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("title", "url", "source")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("published_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SourceFailure(BaseModel):
    """A source that contributed nothing to an ingestion cycle."""

    source: str
    error: str


class IngestionResult(BaseModel):
    """Aggregate outcome of one ingestion cycle."""

    stored: int = 0
    skipped: int = 0
    failed_inserts: int = 0
    failures: List[SourceFailure] = Field(default_factory=list)
    ran: bool = True
    trace_id: Optional[str] = None

    @property
    def failed_sources(self) -> List[str]:
        return [failure.source for failure in self.failures]
