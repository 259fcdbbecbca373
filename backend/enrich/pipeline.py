# backend/enrich/pipeline.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Set

from app.config import PacingConfig
from backend.errors import StorageError
from backend.ingest.diff import DiffFetcher
from backend.models import SUMMARY_FAILED, CommitInfo, EnrichmentReport
from backend.store_factory import CommitStore
from core.bridge_api.gemini_client import GeminiClient

logger = logging.getLogger(__name__)


class SummaryScheduler:
    """
    Background enrichment of freshly ingested commits.

    Commits are cut into fixed-size batches and handled strictly one at a time,
    with a pause between requests and a longer pause between batches, so the
    Gemini quota is respected. A commit whose diff or summary fails gets
    SUMMARY_FAILED and the batch moves on.
    """

    def __init__(
        self,
        store: CommitStore,
        diffs: DiffFetcher,
        summarizer: GeminiClient,
        pacing: Optional[PacingConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.diffs = diffs
        self.summarizer = summarizer
        self.pacing = pacing or PacingConfig()
        self._sleep = sleep
        self._tasks: Set[asyncio.Task] = set()

    # ---------- detached runs ----------

    def spawn(self, project_id: str, github_url: str, commits: Sequence[CommitInfo]) -> asyncio.Task:
        """Start `run` as a task and return without waiting; failures go to the log."""
        task = asyncio.create_task(
            self.run(project_id, github_url, list(commits)),
            name=f"summaries:{project_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background summary processing cancelled (%s)", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background summary processing failed (%s)", task.get_name(), exc_info=exc)
            return
        report: EnrichmentReport = task.result()
        logger.info(
            "Background summary processing completed for %s: %d summarized, %d failed",
            report.project_id, report.summarized, report.failed,
        )

    @property
    def active_runs(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    async def drain(self) -> None:
        """Wait for every spawned run to finish."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ---------- one run ----------

    async def run(self, project_id: str, github_url: str, commits: Sequence[CommitInfo]) -> EnrichmentReport:
        report = EnrichmentReport(project_id=project_id, total=len(commits))
        size = max(1, self.pacing.commits_per_batch)
        batches: List[Sequence[CommitInfo]] = [commits[i:i + size] for i in range(0, len(commits), size)]
        logger.info("Starting background summary processing for %d commits", len(commits))

        done = 0
        for b, batch in enumerate(batches):
            logger.info("Processing summary batch %d/%d (%d commits)", b + 1, len(batches), len(batch))
            for j, commit in enumerate(batch):
                done += 1
                logger.info(
                    "Enriching commit %d/%d: %s", done, len(commits), commit.short_hash
                )
                if await self._enrich_one(project_id, github_url, commit):
                    report.summarized += 1
                else:
                    report.failed += 1

                if j < len(batch) - 1:
                    await self._sleep(self.pacing.delay_between_requests_ms / 1000)

            report.batches += 1
            if b < len(batches) - 1:
                logger.info(
                    "Summary batch complete. Waiting %ds before next batch...",
                    self.pacing.delay_between_batches_ms // 1000,
                )
                await self._sleep(self.pacing.delay_between_batches_ms / 1000)

        return report

    async def _enrich_one(self, project_id: str, github_url: str, commit: CommitInfo) -> bool:
        """Returns True when a real summary was stored."""
        try:
            diff = await self.diffs.fetch(github_url, commit.commit_hash)
        except Exception as e:
            logger.warning("Diff fetch failed for commit %s: %s", commit.short_hash, e)
            summary = SUMMARY_FAILED
        else:
            summary = await self.summarizer.summarize_commit(diff)

        try:
            await self.store.update_commit_summary(project_id, commit.commit_hash, summary)
        except StorageError:
            logger.exception("Could not store summary for commit %s", commit.short_hash)
            return False

        if summary == SUMMARY_FAILED:
            logger.info("Summary failed for commit %s", commit.short_hash)
            return False
        logger.info("Summary generated for commit %s", commit.short_hash)
        return True
