# app/main.py
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from app.renderer import render_commit_log
from app.settings import settings
from backend.enrich.worker import resummarize_failed
from backend.errors import ErrorKind, PulseError, RateLimitedError
from backend.ingest.poller import CommitPoller, build_poller
from backend.store_factory import CommitStore, get_store
from core.bridge_api.gemini_client import gemini_is_active

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.NOT_CONFIGURED: 404,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.STORAGE: 502,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.INTERNAL: 500,
}


class ProjectIn(BaseModel):
    name: str
    github_url: str


# ---------- dependencies ----------
def get_commit_store(request: Request) -> CommitStore:
    return request.app.state.store


def get_poller(request: Request) -> CommitPoller:
    return request.app.state.poller


async def _poll_quietly(poller: CommitPoller, project_id: str) -> None:
    """Fire-and-forget poll behind the commit list; errors only reach the log."""
    try:
        await poller.poll(project_id)
    except PulseError as e:
        logger.warning("background poll for %s failed [%s] %s", project_id, e.kind.value, e.message)


def create_app(store: Optional[CommitStore] = None, poller: Optional[CommitPoller] = None) -> FastAPI:
    app = FastAPI(title="CommitPulse API")

    # ---------- lifecycle ----------
    @app.on_event("startup")
    async def startup() -> None:
        app.state.store = store or get_store()
        await app.state.store.init()
        # fails fast without GEMINI_API_KEY
        app.state.poller = poller or build_poller(app.state.store)

    @app.on_event("shutdown")
    async def shutdown() -> None:
        # detached summary runs are not awaited; every stored summary is already terminal or pending
        await app.state.poller.close()
        await app.state.store.close()

    # ---------- errors ----------
    @app.exception_handler(PulseError)
    async def pulse_error(request: Request, exc: PulseError):
        status = _STATUS_BY_KIND.get(exc.kind, 500)
        headers = {}
        if isinstance(exc, RateLimitedError):
            message = "API rate limit exceeded. Commits will be processed gradually. Please try again in a few minutes."
            if exc.retry_after is not None:
                headers["Retry-After"] = str(int(exc.retry_after))
        else:
            message = exc.message
        return JSONResponse({"error": exc.kind.value, "message": message}, status_code=status, headers=headers)

    # ---------- basics ----------
    @app.get("/health")
    async def health(poller: CommitPoller = Depends(get_poller)):
        return {
            "ok": True,
            "ts": datetime.now(timezone.utc).isoformat(),
            "gemini": gemini_is_active(),
            "active_enrichment_runs": poller.scheduler.active_runs,
        }

    # ---------- projects ----------
    @app.post("/projects")
    async def create_project(
        body: ProjectIn,
        store: CommitStore = Depends(get_commit_store),
        poller: CommitPoller = Depends(get_poller),
    ):
        project = await store.create_project(body.name, body.github_url)
        result = await poller.poll(project.id)
        return {"project": project.model_dump(mode="json"), "poll": result.model_dump(by_alias=True)}

    @app.post("/projects/{project_id}/poll")
    async def poll_project(project_id: str, poller: CommitPoller = Depends(get_poller)):
        result = await poller.poll(project_id)
        body = result.model_dump(by_alias=True)
        if result.written > 0:
            body["message"] = (
                f"{result.written} commits saved immediately. "
                "AI summaries are being generated in the background."
            )
        return body

    @app.get("/projects/{project_id}/commits")
    async def list_commits(
        project_id: str,
        background: BackgroundTasks,
        limit: Optional[int] = None,
        store: CommitStore = Depends(get_commit_store),
        poller: CommitPoller = Depends(get_poller),
    ):
        background.add_task(_poll_quietly, poller, project_id)
        commits = await store.list_commits(project_id, limit=limit)
        return [{**c.model_dump(mode="json"), "status": c.status.value} for c in commits]

    @app.get("/projects/{project_id}/commits/html", response_class=HTMLResponse)
    async def commits_html(project_id: str, store: CommitStore = Depends(get_commit_store)):
        github_url = await store.get_project_url(project_id)
        commits = await store.list_commits(project_id)
        return HTMLResponse(render_commit_log(project_id, commits, github_url))

    @app.post("/projects/{project_id}/commits/resummarize")
    async def resummarize(
        project_id: str,
        include_pending: bool = False,
        store: CommitStore = Depends(get_commit_store),
        poller: CommitPoller = Depends(get_poller),
    ):
        queued = await resummarize_failed(store, poller.scheduler, project_id, include_pending=include_pending)
        return {"queued": queued}

    return app


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
app = create_app()
