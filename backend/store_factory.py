# backend/store_factory.py
from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, Sequence

from app.settings import settings
from backend.models import Commit, CommitInfo, Project


class CommitStore(Protocol):
    """What the commit pipeline needs from persistence. All three backends satisfy it."""

    async def init(self) -> None: ...
    async def close(self) -> None: ...
    async def create_project(self, name: str, github_url: Optional[str], project_id: Optional[str] = None) -> Project: ...
    async def get_project_url(self, project_id: str) -> Optional[str]: ...
    async def list_active_projects(self) -> List[Project]: ...
    async def list_commit_hashes(self, project_id: str) -> set[str]: ...
    async def insert_commits(self, project_id: str, commits: Sequence[CommitInfo], summary: str) -> int: ...
    async def update_commit_summary(self, project_id: str, commit_hash: str, summary: str) -> int: ...
    async def list_commits(self, project_id: str, limit: Optional[int] = None) -> List[Commit]: ...
    async def list_commits_with_summary(self, project_id: str, summaries: Iterable[str]) -> List[Commit]: ...


def get_store() -> CommitStore:
    if settings.SUPABASE_URL and (settings.FORCE_SUPABASE_REST or not settings.SUPABASE_DB_URL):
        from backend.db_rest import SupabaseREST
        from backend.store_rest import StoreREST
        return StoreREST(SupabaseREST())
    if settings.SUPABASE_DB_URL:
        from backend.db import DB
        from backend.store import Store
        return Store(DB())
    from core.storage.db import DB as SQLiteDB
    return SQLiteDB(settings.DB_PATH)
