# backend/ingest/github.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx
from aiolimiter import AsyncLimiter

from app.settings import Settings, settings as default_settings
from backend.errors import (
    ConfigurationError,
    FetchTimeoutError,
    NotFoundError,
    RateLimitedError,
    TransportError,
)
from backend.models import CommitInfo

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
GITHUB_JSON = "application/vnd.github+json"


def parse_github_url(github_url: str) -> Tuple[str, str]:
    """
    "https://github.com/owner/repo" -> ("owner", "repo").
    Trailing slashes and a ".git" suffix are tolerated; anything else is a configuration error.
    """
    raw = (github_url or "").strip()
    for prefix in ("https://github.com/", "http://github.com/", "github.com/"):
        if raw.startswith(prefix):
            raw = raw[len(prefix):]
            break
    else:
        raise ConfigurationError(f"not a GitHub repository URL: {github_url!r}")

    raw = raw.strip("/")
    if raw.endswith(".git"):
        raw = raw[:-4]
    parts = raw.split("/")
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError(f"invalid GitHub URL format: {github_url!r}")
    return parts[0], parts[1]


def _retry_after(resp: httpx.Response) -> Optional[float]:
    ra = resp.headers.get("Retry-After")
    if ra and ra.isdigit():
        return float(ra)
    reset = resp.headers.get("X-RateLimit-Reset")
    if reset and reset.isdigit():
        return max(0.0, float(reset) - time.time())
    return None


def raise_for_github_status(resp: httpx.Response, what: str) -> None:
    """Translate a GitHub error response into the pipeline's typed errors."""
    code = resp.status_code
    if code < 400:
        return
    if code == 401:
        raise ConfigurationError(f"GitHub rejected the configured token ({what})")
    if code == 404:
        raise NotFoundError(f"GitHub resource not found: {what}")
    if code == 429 or (code == 403 and resp.headers.get("X-RateLimit-Remaining") == "0"):
        raise RateLimitedError(f"GitHub API rate limit exceeded ({what})", retry_after=_retry_after(resp))
    raise TransportError(f"GitHub request failed: {code} {what}")


def _commit_to_info(commit: Dict[str, Any]) -> CommitInfo:
    info = commit.get("commit") or {}
    author = info.get("author") or {}
    account = commit.get("author") or {}
    fields: Dict[str, Any] = {
        "commit_hash": commit.get("sha") or "",
        "commit_message": info.get("message") or "No message",
        "commit_author_name": author.get("name") or account.get("login") or "Unknown",
        "commit_author_avatar": account.get("avatar_url") or None,
    }
    if author.get("date"):
        fields["commit_date"] = author["date"]
    return CommitInfo(**fields)


class GitHubClient:
    """
    Thin async GitHub REST client shared by the commit lister and the diff fetcher.
    One AsyncLimiter paces every request, so overlapping polls cannot burst the API.
    No retries here: callers own retry policy.
    """

    def __init__(
        self,
        token: Optional[str],
        *,
        api_url: str = GITHUB_API,
        timeout_s: float = 10.0,
        rate_qps: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout_s = timeout_s
        self.rate = AsyncLimiter(max_rate=rate_qps, time_period=1)
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, s: Settings | None = None, client: Optional[httpx.AsyncClient] = None) -> "GitHubClient":
        s = s or default_settings
        return cls(
            s.GITHUB_TOKEN,
            api_url=s.GITHUB_API_URL,
            timeout_s=s.GITHUB_TIMEOUT_S,
            rate_qps=s.GITHUB_RATE_QPS,
            client=client,
        )

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, accept: str) -> Dict[str, str]:
        return {
            "Accept": accept,
            "Authorization": f"Bearer {self.token}",
            "User-Agent": "commitpulse/ingestor",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def get(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        accept: str = GITHUB_JSON,
        timeout_s: Optional[float] = None,
    ) -> httpx.Response:
        if not self.token:
            raise ConfigurationError("GITHUB_TOKEN is not configured")

        url = f"{self.api_url}/{path.lstrip('/')}"
        async with self.rate:
            try:
                resp = await self._client.get(
                    url,
                    params=params,
                    headers=self._headers(accept),
                    timeout=timeout_s or self.timeout_s,
                )
            except httpx.TimeoutException as e:
                raise FetchTimeoutError(f"GitHub request timed out: {path}") from e
            except httpx.HTTPError as e:
                raise TransportError(f"GitHub request failed: {path}: {e}") from e

        raise_for_github_status(resp, path)
        return resp

    async def list_commits(self, github_url: str, per_page: int = 20) -> List[CommitInfo]:
        """Most recent commits on the default branch, newest first, at most `per_page`."""
        owner, repo = parse_github_url(github_url)
        resp = await self.get(f"/repos/{owner}/{repo}/commits", params={"per_page": min(per_page, 100)})
        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(f"GitHub returned non-JSON commit list for {owner}/{repo}") from e
        if not isinstance(data, list):
            raise TransportError(f"unexpected commit list payload for {owner}/{repo}")

        commits = [_commit_to_info(c) for c in data[:per_page] if isinstance(c, dict) and c.get("sha")]
        logger.info("Fetched %d commits for %s/%s", len(commits), owner, repo)
        return commits
