# backend/ingest/poller.py
"""
One commit polling cycle for a project.

fetch -> dedupe -> write happen in the caller's coroutine; summary enrichment
is handed to the SummaryScheduler as a detached task, so `poll` returns as soon
as the new commits are stored (with the pending summary).
"""
from __future__ import annotations

import logging
from typing import Optional

from app.config import PacingConfig
from app.settings import Settings, settings as default_settings
from backend.enrich.pipeline import SummaryScheduler
from backend.errors import NotConfiguredError
from backend.ingest.dedupe import filter_unseen
from backend.ingest.diff import DiffFetcher
from backend.ingest.github import GitHubClient
from backend.ingest.writer import write_pending
from backend.models import PollResult
from backend.store_factory import CommitStore
from core.bridge_api.gemini_client import GeminiClient

logger = logging.getLogger(__name__)


class CommitPoller:
    def __init__(
        self,
        store: CommitStore,
        github: GitHubClient,
        scheduler: SummaryScheduler,
        pacing: Optional[PacingConfig] = None,
    ):
        self.store = store
        self.github = github
        self.scheduler = scheduler
        self.pacing = pacing or PacingConfig()

    async def resolve_url(self, project_id: str) -> str:
        github_url = await self.store.get_project_url(project_id)
        if not github_url:
            raise NotConfiguredError(f"Project {project_id} has no GitHub URL configured")
        return github_url

    async def poll(self, project_id: str) -> PollResult:
        """
        Raises NotConfiguredError, ConfigurationError, NotFoundError, RateLimitedError,
        TransportError or StorageError from the synchronous part. Nothing raised by
        the enrichment run reaches the caller.
        """
        if not project_id:
            raise ValueError("Project ID is required")
        logger.info("Polling commits for project: %s", project_id)

        github_url = await self.resolve_url(project_id)
        fetched = await self.github.list_commits(github_url, per_page=self.pacing.max_commits_per_poll)
        unseen = await filter_unseen(self.store, project_id, fetched)

        if not unseen:
            logger.info("No new commits to process for project %s", project_id)
            return PollResult(written=0, total_fetched=len(fetched))

        written = await write_pending(self.store, project_id, unseen)
        self.scheduler.spawn(project_id, github_url, unseen)
        return PollResult(written=written, total_fetched=len(fetched))

    async def close(self) -> None:
        await self.github.close()


def build_poller(
    store: CommitStore,
    s: Settings | None = None,
    *,
    github: Optional[GitHubClient] = None,
    gemini: Optional[GeminiClient] = None,
) -> CommitPoller:
    """Wire the production pipeline. Raises ConfigurationError without GEMINI_API_KEY."""
    s = s or default_settings
    pacing = PacingConfig.from_settings(s)
    if not pacing.within_quota(s.GEMINI_REQUESTS_PER_MINUTE):
        logger.warning(
            "Summary pacing (%dms + %dms per request) exceeds %d requests/minute; expect rate limiting",
            pacing.pre_request_delay_ms, pacing.delay_between_requests_ms, s.GEMINI_REQUESTS_PER_MINUTE,
        )
    github = github or GitHubClient.from_settings(s)
    gemini = gemini or GeminiClient.from_settings(s, pacing=pacing)
    scheduler = SummaryScheduler(store, DiffFetcher(github, timeout_s=s.GITHUB_TIMEOUT_S), gemini, pacing)
    return CommitPoller(store, github, scheduler, pacing)
