# backend/ingest/writer.py
from __future__ import annotations

import logging
from typing import Sequence

from backend.models import SUMMARY_PENDING, CommitInfo
from backend.store_factory import CommitStore

logger = logging.getLogger(__name__)


async def write_pending(store: CommitStore, project_id: str, commits: Sequence[CommitInfo]) -> int:
    """
    Bulk-insert unseen commits with the pending summary so readers see them at once.

    Rows lost to a concurrent poll (unique index hit) only show up as a smaller
    count; the next poll's dedupe step picks up anything genuinely missed.
    """
    if not commits:
        return 0
    written = await store.insert_commits(project_id, commits, SUMMARY_PENDING)
    if written != len(commits):
        logger.warning(
            "Project %s: wrote %d of %d commits (duplicates skipped or partial insert)",
            project_id, written, len(commits),
        )
    else:
        logger.info("Immediately saved %d commits for project %s", written, project_id)
    return written
