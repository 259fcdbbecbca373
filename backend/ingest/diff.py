# backend/ingest/diff.py
from __future__ import annotations

from backend.errors import TransportError
from backend.ingest.github import GitHubClient, parse_github_url

GITHUB_DIFF = "application/vnd.github.v3.diff"


class DiffFetcher:
    """Raw unified diff for a single commit. Raises typed errors; never retries."""

    def __init__(self, github: GitHubClient, timeout_s: float = 10.0):
        self.github = github
        self.timeout_s = timeout_s

    async def fetch(self, github_url: str, commit_hash: str) -> str:
        if not commit_hash:
            raise ValueError("commit hash is required")
        owner, repo = parse_github_url(github_url)
        resp = await self.github.get(
            f"/repos/{owner}/{repo}/commits/{commit_hash}",
            accept=GITHUB_DIFF,
            timeout_s=self.timeout_s,
        )
        if not resp.text:
            raise TransportError(f"no diff data received for {commit_hash[:8]}")
        return resp.text
