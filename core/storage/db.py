from __future__ import annotations
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

import aiosqlite

from backend.errors import StorageError
from backend.models import Commit, CommitInfo, Project

DB_PATH = os.getenv("DB_PATH", "./commitpulse.sqlite")
SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.sql")

_COMMIT_COLUMNS = (
    "id, project_id, commit_hash, commit_message, commit_author_name, "
    "commit_author_avatar, commit_date, summary, created_at"
)


def _utc_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class DB:
    """Local SQLite store. Default backend for development and tests."""

    def __init__(self, path: str | None = None):
        self.path = path or DB_PATH
        self.conn: aiosqlite.Connection | None = None

    async def init(self):
        if self.conn is not None:
            return
        try:
            self.conn = await aiosqlite.connect(self.path)
            self.conn.row_factory = aiosqlite.Row
            await self.conn.execute("PRAGMA foreign_keys=ON;")
            with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
                await self.conn.executescript(f.read())
            await self.conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"sqlite init failed: {e}") from e

    async def close(self):
        if self.conn:
            await self.conn.close()
            self.conn = None

    def _require(self) -> aiosqlite.Connection:
        if self.conn is None:
            raise StorageError("sqlite store not initialized; call init() first")
        return self.conn

    # -------------------- projects --------------------
    async def create_project(self, name: str, github_url: Optional[str], project_id: Optional[str] = None) -> Project:
        conn = self._require()
        pid = project_id or uuid.uuid4().hex
        try:
            await conn.execute(
                "INSERT INTO projects (id, name, github_url) VALUES (?, ?, ?)",
                (pid, name, github_url),
            )
            await conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"create project failed: {e}") from e
        return Project(id=pid, name=name, github_url=github_url)

    async def get_project_url(self, project_id: str) -> Optional[str]:
        conn = self._require()
        try:
            async with conn.execute("SELECT github_url FROM projects WHERE id = ?", (project_id,)) as cur:
                row = await cur.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"project lookup failed: {e}") from e
        return row["github_url"] if row else None

    async def list_active_projects(self) -> List[Project]:
        conn = self._require()
        try:
            async with conn.execute(
                "SELECT id, name, github_url, deleted_at FROM projects WHERE deleted_at IS NULL ORDER BY created_at"
            ) as cur:
                rows = await cur.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"project listing failed: {e}") from e
        return [Project(**dict(r)) for r in rows]

    # -------------------- commits --------------------
    async def list_commit_hashes(self, project_id: str) -> set[str]:
        conn = self._require()
        try:
            async with conn.execute("SELECT commit_hash FROM commits WHERE project_id = ?", (project_id,)) as cur:
                rows = await cur.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"hash lookup failed: {e}") from e
        return {r["commit_hash"] for r in rows}

    async def insert_commits(self, project_id: str, commits: Sequence[CommitInfo], summary: str) -> int:
        if not commits:
            return 0
        conn = self._require()
        q = """
        INSERT OR IGNORE INTO commits
            (project_id, commit_hash, commit_message, commit_author_name, commit_author_avatar, commit_date, summary)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """
        params = [
            (
                project_id,
                c.commit_hash,
                c.commit_message,
                c.commit_author_name,
                c.commit_author_avatar,
                _utc_iso(c.commit_date),
                summary,
            )
            for c in commits
        ]
        try:
            cur = await conn.executemany(q, params)
            written = cur.rowcount
            await cur.close()
            await conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"bulk insert failed: {e}") from e
        return written

    async def update_commit_summary(self, project_id: str, commit_hash: str, summary: str) -> int:
        conn = self._require()
        try:
            cur = await conn.execute(
                "UPDATE commits SET summary = ? WHERE project_id = ? AND commit_hash = ?",
                (summary, project_id, commit_hash),
            )
            updated = cur.rowcount
            await cur.close()
            await conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"summary update failed: {e}") from e
        return updated

    async def list_commits(self, project_id: str, limit: Optional[int] = None) -> List[Commit]:
        q = f"SELECT {_COMMIT_COLUMNS} FROM commits WHERE project_id = ? ORDER BY commit_date DESC, id DESC"
        params: tuple = (project_id,)
        if limit:
            q += " LIMIT ?"
            params = (project_id, int(limit))
        return await self._fetch_commits(q, params)

    async def list_commits_with_summary(self, project_id: str, summaries: Iterable[str]) -> List[Commit]:
        wanted = list(summaries)
        if not wanted:
            return []
        marks = ",".join("?" for _ in wanted)
        q = (
            f"SELECT {_COMMIT_COLUMNS} FROM commits "
            f"WHERE project_id = ? AND summary IN ({marks}) ORDER BY commit_date DESC, id DESC"
        )
        return await self._fetch_commits(q, (project_id, *wanted))

    async def _fetch_commits(self, q: str, params: tuple) -> List[Commit]:
        conn = self._require()
        try:
            async with conn.execute(q, params) as cur:
                rows = await cur.fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"commit listing failed: {e}") from e
        return [Commit(**dict(r)) for r in rows]
