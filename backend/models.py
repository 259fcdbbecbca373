# backend/models.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Summary sentinels. Readers must tolerate SUMMARY_PENDING until enrichment lands.
SUMMARY_PENDING = "Processing summary..."
SUMMARY_FAILED = "Failed to generate summary"
SUMMARY_EMPTY = "No summary generated"


class SummaryStatus(str, Enum):
    PROCESSING = "processing"
    FAILED = "failed"
    EMPTY = "empty"
    SUMMARIZED = "summarized"


def summary_status(summary: Optional[str]) -> SummaryStatus:
    if summary is None or summary == SUMMARY_PENDING:
        return SummaryStatus.PROCESSING
    if summary == SUMMARY_FAILED:
        return SummaryStatus.FAILED
    if summary == SUMMARY_EMPTY:
        return SummaryStatus.EMPTY
    return SummaryStatus.SUMMARIZED


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommitInfo(BaseModel):
    """One commit as listed by GitHub, before it is stored."""

    commit_hash: str
    commit_message: str = "No message"
    commit_author_name: str = "Unknown"
    commit_author_avatar: Optional[str] = None
    commit_date: datetime = Field(default_factory=_utcnow)

    @property
    def short_hash(self) -> str:
        return self.commit_hash[:8]


class Commit(CommitInfo):
    """A stored commit row."""

    id: Optional[int] = None
    project_id: str
    summary: str = SUMMARY_PENDING
    created_at: Optional[datetime] = None

    @property
    def status(self) -> SummaryStatus:
        return summary_status(self.summary)


class Project(BaseModel):
    id: str
    name: str
    github_url: Optional[str] = None
    deleted_at: Optional[datetime] = None


class PollResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    written: int
    total_fetched: int = Field(serialization_alias="totalFetched")


class EnrichmentReport(BaseModel):
    project_id: str
    total: int = 0
    summarized: int = 0
    failed: int = 0
    batches: int = 0
