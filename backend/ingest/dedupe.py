# backend/ingest/dedupe.py
from __future__ import annotations

import logging
from typing import List, Sequence

from backend.models import CommitInfo
from backend.store_factory import CommitStore

logger = logging.getLogger(__name__)


async def filter_unseen(store: CommitStore, project_id: str, commits: Sequence[CommitInfo]) -> List[CommitInfo]:
    """
    Keep only commits whose hash is not stored for the project, in input order.
    A hash repeated inside `commits` is kept once.
    """
    seen = set(await store.list_commit_hashes(project_id))
    unseen: List[CommitInfo] = []
    for c in commits:
        if c.commit_hash in seen:
            continue
        seen.add(c.commit_hash)
        unseen.append(c)

    logger.info("Found %d unprocessed commits out of %d total", len(unseen), len(commits))
    return unseen
