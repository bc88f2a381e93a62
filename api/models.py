from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from ingestion.db.models import RunStatus

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50


class SourceRef(BaseModel):
    name: str


class ArticleOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str = ""
    content: str = ""
    url: str
    image_url: Optional[str] = Field(None, alias="urlToImage")
    source: SourceRef
    published_at: Optional[datetime] = Field(None, alias="publishedAt")

    @classmethod
    def from_row(cls, row: Any) -> "ArticleOut":
        published = row.published_at
        if published is not None and published.tzinfo is None:
            # SQLite hands back naive values; they were written as UTC
            published = published.replace(tzinfo=timezone.utc)
        return cls(
            title=row.title,
            description=row.description or "",
            content=row.content or "",
            url=row.url,
            image_url=row.image_url,
            source=SourceRef(name=row.source),
            published_at=published,
        )


class PaginatedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    articles: list[ArticleOut] = Field(default_factory=list)
    total_count: int = Field(..., alias="totalCount")
    current_page: int = Field(..., alias="currentPage")
    page_size: int = Field(..., alias="pageSize")
    total_pages: int = Field(..., alias="totalPages")


class SummarizeRequest(BaseModel):
    url: HttpUrl


class SummarizeResponse(BaseModel):
    summary: str


class IngestionRunResponse(BaseModel):
    stored: int
    skipped: int
    failed_sources: list[str] = Field(default_factory=list)
    trace_id: Optional[str] = None


class IngestionRunRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: RunStatus
    trigger: str
    trace_id: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None
    stored: int = 0
    skipped: int = 0
    failed_sources: list[str] = Field(default_factory=list)
    error_message: Optional[str] = None


def clamp_page(page: int) -> int:
    return page if page >= 1 else 1


def clamp_page_size(page_size: int) -> int:
    if page_size < 1:
        return DEFAULT_PAGE_SIZE
    return min(page_size, MAX_PAGE_SIZE)


def total_pages(total_count: int, page_size: int) -> int:
    return (total_count + page_size - 1) // page_size
