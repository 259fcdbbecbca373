import uuid
from typing import Iterable, List, Optional, Sequence
from backend.db import DB
from backend.models import Commit, CommitInfo, Project

_COMMIT_COLUMNS = (
    "id, project_id, commit_hash, commit_message, commit_author_name, "
    "commit_author_avatar, commit_date, summary, created_at"
)

class Store:
    def __init__(self, db: DB):
        self.db = db

    async def init(self):
        await self.db.connect()

    async def close(self):
        await self.db.close()

    async def create_project(self, name: str, github_url: Optional[str], project_id: Optional[str] = None) -> Project:
        pid = project_id or uuid.uuid4().hex
        await self.db.exec(
            "insert into projects(id,name,github_url) values($1,$2,$3)",
            pid, name, github_url,
        )
        return Project(id=pid, name=name, github_url=github_url)

    async def get_project_url(self, project_id: str) -> Optional[str]:
        return await self.db.run_one("select github_url from projects where id=$1", project_id)

    async def list_active_projects(self) -> List[Project]:
        rows = await self.db.run(
            "select id,name,github_url,deleted_at from projects where deleted_at is null order by created_at"
        )
        return [Project(**r) for r in rows]

    async def list_commit_hashes(self, project_id: str) -> set[str]:
        rows = await self.db.run("select commit_hash from commits where project_id=$1", project_id)
        return {r["commit_hash"] for r in rows}

    async def insert_commits(self, project_id: str, commits: Sequence[CommitInfo], summary: str) -> int:
        if not commits:
            return 0
        q = """
        insert into commits(project_id,commit_hash,commit_message,commit_author_name,commit_author_avatar,commit_date,summary)
        select $1, h, m, a, av, d, $7
        from unnest($2::text[], $3::text[], $4::text[], $5::text[], $6::timestamptz[]) as t(h, m, a, av, d)
        on conflict(project_id,commit_hash) do nothing
        returning id;
        """
        rows = await self.db.run(
            q,
            project_id,
            [c.commit_hash for c in commits],
            [c.commit_message for c in commits],
            [c.commit_author_name for c in commits],
            [c.commit_author_avatar for c in commits],
            [c.commit_date for c in commits],
            summary,
        )
        return len(rows)

    async def update_commit_summary(self, project_id: str, commit_hash: str, summary: str) -> int:
        status = await self.db.exec(
            "update commits set summary=$3 where project_id=$1 and commit_hash=$2",
            project_id, commit_hash, summary,
        )
        # asyncpg returns the command tag, e.g. "UPDATE 1"
        return int(status.split()[-1]) if status else 0

    async def list_commits(self, project_id: str, limit: Optional[int] = None) -> List[Commit]:
        q = f"select {_COMMIT_COLUMNS} from commits where project_id=$1 order by commit_date desc, id desc"
        if limit:
            rows = await self.db.run(q + " limit $2", project_id, int(limit))
        else:
            rows = await self.db.run(q, project_id)
        return [Commit(**r) for r in rows]

    async def list_commits_with_summary(self, project_id: str, summaries: Iterable[str]) -> List[Commit]:
        wanted = list(summaries)
        if not wanted:
            return []
        rows = await self.db.run(
            f"select {_COMMIT_COLUMNS} from commits where project_id=$1 and summary = any($2::text[]) "
            "order by commit_date desc, id desc",
            project_id, wanted,
        )
        return [Commit(**r) for r in rows]
