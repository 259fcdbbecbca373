# tests/conftest.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import pytest

from app.config import PacingConfig
from backend.enrich.pipeline import SummaryScheduler
from backend.ingest.diff import DiffFetcher
from backend.ingest.github import GitHubClient
from backend.ingest.poller import CommitPoller
from core.bridge_api.gemini_client import GeminiClient
from core.storage.db import DB

REPO_URL = "https://github.com/acme/widgets"


def commit_payload(sha: str, message: str = "", *, name: Optional[str] = "Ada", login: Optional[str] = "ada",
                   date: Optional[str] = "2024-05-01T12:00:00Z", avatar: Optional[str] = None) -> Dict[str, Any]:
    """Shape of one element of GET /repos/{owner}/{repo}/commits."""
    author: Dict[str, Any] = {}
    if name:
        author["name"] = name
    if date:
        author["date"] = date
    return {
        "sha": sha,
        "commit": {"message": message or f"change {sha}", "author": author},
        "author": {"login": login, "avatar_url": avatar or f"https://avatars.example/{login}"} if login else None,
    }


class FakeGitHubAPI:
    """In-process stand-in for the GitHub REST API, served through httpx.MockTransport."""

    def __init__(self, commits: Optional[List[Dict[str, Any]]] = None):
        self.commits = commits or []
        self.diffs: Dict[str, str] = {}
        self.diff_status: Dict[str, int] = {}
        self.diff_timeouts: set[str] = set()
        self.list_status = 200
        self.list_headers: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []

    @property
    def diff_requests(self) -> List[str]:
        return [r.url.path.rsplit("/", 1)[-1] for r in self.requests if not r.url.path.endswith("/commits")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/commits"):
            if self.list_status != 200:
                return httpx.Response(self.list_status, headers=self.list_headers, json={"message": "error"})
            per_page = int(request.url.params.get("per_page", 30))
            return httpx.Response(200, json=self.commits[:per_page])

        sha = path.rsplit("/", 1)[-1]
        if sha in self.diff_timeouts:
            raise httpx.ReadTimeout("timed out", request=request)
        if sha in self.diff_status:
            return httpx.Response(self.diff_status[sha], json={"message": "Not Found"})
        text = self.diffs.get(sha, f"diff --git a/{sha}.txt b/{sha}.txt\n+added {sha}\n")
        return httpx.Response(200, text=text)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeResponse:
    def __init__(self, text: str):
        self.text = text


class FakeModel:
    """Records prompts; pops scripted outcomes (text or exception), then answers with `default`."""

    def __init__(self, outcomes=None, default: str = "* Summarized the change"):
        self.outcomes = list(outcomes or [])
        self.default = default
        self.calls: List[List[str]] = []

    async def generate_content_async(self, parts):
        self.calls.append(parts)
        if self.outcomes:
            out = self.outcomes.pop(0)
            if isinstance(out, BaseException):
                raise out
            return FakeResponse(out)
        return FakeResponse(self.default)


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
async def store(tmp_path):
    db = DB(str(tmp_path / "commits.sqlite"))
    await db.init()
    yield db
    await db.close()


@pytest.fixture
def github_api():
    return FakeGitHubAPI()


@pytest.fixture
async def github(github_api):
    client = github_api.client()
    yield GitHubClient("test-token", client=client, rate_qps=1000)
    await client.aclose()


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def gemini(fake_model):
    return GeminiClient(fake_model, pacing=PacingConfig.immediate(), sleep=SleepRecorder())


@pytest.fixture
def scheduler(store, github, gemini, sleeps):
    return SummaryScheduler(store, DiffFetcher(github), gemini, PacingConfig.immediate(), sleep=sleeps)


@pytest.fixture
def poller(store, github, scheduler):
    return CommitPoller(store, github, scheduler, PacingConfig.immediate())
