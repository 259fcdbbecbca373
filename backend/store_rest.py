# backend/store_rest.py
from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence
from datetime import datetime, timezone

from backend.db_rest import SupabaseREST
from backend.models import Commit, CommitInfo, Project

JSON = Dict[str, Any]

_COMMIT_SELECT = (
    "id,project_id,commit_hash,commit_message,commit_author_name,"
    "commit_author_avatar,commit_date,summary,created_at"
)


def _utc_iso(dt: Optional[datetime]) -> Optional[str]:
    if not dt:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _quote(value: str) -> str:
    # PostgREST list literal; double quotes keep commas and dots inside values intact
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class StoreREST:
    def __init__(self, rest: SupabaseREST):
        self.rest = rest

    async def init(self):
        return

    async def close(self):
        return

    # -------------------- projects --------------------
    async def create_project(self, name: str, github_url: Optional[str], project_id: Optional[str] = None) -> Project:
        pid = project_id or uuid.uuid4().hex
        await self.rest.insert(
            "projects",
            [{"id": pid, "name": name, "github_url": github_url}],
            return_representation=False,
        )
        return Project(id=pid, name=name, github_url=github_url)

    async def get_project_url(self, project_id: str) -> Optional[str]:
        rows = await self.rest.select(
            "projects", {"select": "github_url", "id": f"eq.{project_id}", "limit": "1"}
        )
        return rows[0].get("github_url") if rows else None

    async def list_active_projects(self) -> List[Project]:
        rows = await self.rest.select(
            "projects",
            {"select": "id,name,github_url,deleted_at", "deleted_at": "is.null", "order": "created_at.asc"},
        )
        return [Project(**r) for r in rows]

    # -------------------- commits --------------------
    async def list_commit_hashes(self, project_id: str) -> set[str]:
        rows = await self.rest.select(
            "commits", {"select": "commit_hash", "project_id": f"eq.{project_id}"}
        )
        return {r["commit_hash"] for r in rows}

    async def insert_commits(self, project_id: str, commits: Sequence[CommitInfo], summary: str) -> int:
        if not commits:
            return 0
        payload = [
            {
                "project_id": project_id,
                "commit_hash": c.commit_hash,
                "commit_message": c.commit_message,
                "commit_author_name": c.commit_author_name,
                "commit_author_avatar": c.commit_author_avatar,
                "commit_date": _utc_iso(c.commit_date),
                "summary": summary,
            }
            for c in commits
        ]
        rows = await self.rest.insert(
            "commits",
            payload,
            ignore_duplicates=True,
            on_conflict="project_id,commit_hash",
            return_representation=True,
        )
        return len(rows)

    async def update_commit_summary(self, project_id: str, commit_hash: str, summary: str) -> int:
        rows = await self.rest.update(
            "commits",
            {"project_id": f"eq.{project_id}", "commit_hash": f"eq.{commit_hash}"},
            {"summary": summary},
        )
        return len(rows)

    # -------------------- reads --------------------
    async def list_commits(self, project_id: str, limit: Optional[int] = None) -> List[Commit]:
        params = {
            "select": _COMMIT_SELECT,
            "project_id": f"eq.{project_id}",
            "order": "commit_date.desc,id.desc",
        }
        if limit:
            params["limit"] = str(int(limit))
        rows = await self.rest.select("commits", params)
        return [Commit(**r) for r in rows]

    async def list_commits_with_summary(self, project_id: str, summaries: Iterable[str]) -> List[Commit]:
        wanted = list(summaries)
        if not wanted:
            return []
        rows = await self.rest.select(
            "commits",
            {
                "select": _COMMIT_SELECT,
                "project_id": f"eq.{project_id}",
                "summary": "in.(" + ",".join(_quote(s) for s in wanted) + ")",
                "order": "commit_date.desc,id.desc",
            },
        )
        return [Commit(**r) for r in rows]
