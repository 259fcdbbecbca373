"""Rate limiting and batch pacing for the commit enrichment pipeline."""
from __future__ import annotations

import math

from pydantic import BaseModel

from app.settings import Settings, settings as default_settings


def backoff_delay(attempt: int, base_ms: int) -> int:
    """Exponential backoff in milliseconds: base * 2**attempt, attempts counted from 0."""
    return base_ms * (2 ** attempt)


def calculate_delay(requests_per_minute: int) -> int:
    """Spacing in milliseconds that keeps a caller at or under the given rate."""
    return math.ceil(60_000 / requests_per_minute)


class PacingConfig(BaseModel):
    # Gemini
    delay_between_requests_ms: int = 3000
    pre_request_delay_ms: int = 1000
    max_retries: int = 3
    base_retry_delay_ms: int = 2000
    input_limit: int = 10_000

    # commits
    commits_per_batch: int = 3
    delay_between_batches_ms: int = 30_000
    max_commits_per_poll: int = 20

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> "PacingConfig":
        s = s or default_settings
        return cls(
            delay_between_requests_ms=s.GEMINI_DELAY_BETWEEN_REQUESTS_MS,
            pre_request_delay_ms=s.GEMINI_PRE_REQUEST_DELAY_MS,
            max_retries=s.GEMINI_MAX_RETRIES,
            base_retry_delay_ms=s.GEMINI_BASE_RETRY_DELAY_MS,
            input_limit=s.SUMMARY_INPUT_LIMIT,
            commits_per_batch=s.COMMITS_PER_BATCH,
            delay_between_batches_ms=s.DELAY_BETWEEN_BATCHES_MS,
            max_commits_per_poll=s.MAX_COMMITS_PER_POLL,
        )

    @classmethod
    def immediate(cls) -> "PacingConfig":
        """No delays at all; for tests and one-off local backfills."""
        return cls(
            delay_between_requests_ms=0,
            pre_request_delay_ms=0,
            base_retry_delay_ms=0,
            delay_between_batches_ms=0,
        )

    def retry_delay_ms(self, attempt: int) -> int:
        return backoff_delay(attempt, self.base_retry_delay_ms)

    def within_quota(self, requests_per_minute: int) -> bool:
        """True when back-to-back summaries are spaced at least as far apart as the quota needs."""
        spacing = self.pre_request_delay_ms + self.delay_between_requests_ms
        return spacing >= calculate_delay(requests_per_minute)
