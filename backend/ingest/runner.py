# backend/ingest/runner.py
"""
Commit polling runner.

Usage:
  python -m backend.ingest.runner --once --debug
  python -m backend.ingest.runner --project <id> --resummarize

Environment variables:
  GITHUB_TOKEN            = GitHub token used for commit listing and diffs (required)
  GEMINI_API_KEY          = Gemini key used for summaries (required)
  TRACKED_PROJECTS        = optional comma separated project ids, polled in addition to active projects
  POLL_INTERVAL_SECONDS   = seconds between cycles in loop mode (default: 300)
  SUPABASE_URL / SUPABASE_DB_URL / DB_PATH = storage backend (see backend/store_factory.py)
"""
import argparse
import asyncio
import logging
from typing import List, Optional

from dotenv import load_dotenv

from app.settings import settings
from backend.enrich.worker import resummarize_failed
from backend.errors import PulseError, RateLimitedError
from backend.ingest.poller import CommitPoller, build_poller
from backend.store_factory import CommitStore, get_store

logger = logging.getLogger("backend.ingest.runner")


async def project_ids(store: CommitStore, explicit: Optional[List[str]] = None) -> List[str]:
    if explicit:
        return list(dict.fromkeys(explicit))
    ids = [p.id for p in await store.list_active_projects()]
    ids.extend(settings.TRACKED_PROJECTS)
    return list(dict.fromkeys(ids))


async def poll_all(poller: CommitPoller, ids: List[str]) -> int:
    """Poll each project in sequence; one project's failure does not stop the others."""
    polled = 0
    for pid in ids:
        try:
            result = await poller.poll(pid)
            logger.info("project %s: wrote %d of %d fetched", pid, result.written, result.total_fetched)
            polled += 1
        except RateLimitedError as e:
            logger.warning("project %s: GitHub rate limited, try later (retry_after=%s)", pid, e.retry_after)
        except PulseError as e:
            logger.error("project %s: poll failed [%s] %s", pid, e.kind.value, e.message)
    return polled


async def main_once(args) -> None:
    store = get_store()
    await store.init()
    try:
        # raises ConfigurationError without GEMINI_API_KEY
        poller = build_poller(store)
        try:
            await _run_once(store, poller, args)
        finally:
            await poller.close()
    finally:
        await store.close()


async def _run_once(store: CommitStore, poller: CommitPoller, args) -> None:
    ids = await project_ids(store, args.project)
    if not ids:
        logger.info("No active projects; nothing to poll.")
        return

    if args.resummarize:
        for pid in ids:
            try:
                n = await resummarize_failed(
                    store, poller.scheduler, pid, include_pending=args.include_pending, wait=True
                )
                logger.info("project %s: re-summarized %d commits", pid, n)
            except PulseError as e:
                logger.error("project %s: re-summarize failed [%s] %s", pid, e.kind.value, e.message)
        return

    await poll_all(poller, ids)
    # one-shot mode must not exit before the detached enrichment runs finish
    await poller.scheduler.drain()
    logger.info("Runner: all tasks finished.")


async def loop_runner(args) -> None:
    store = get_store()
    await store.init()
    try:
        poller = build_poller(store)
        interval = settings.POLL_INTERVAL_SECONDS
        try:
            while True:
                ids = await project_ids(store, args.project)
                await poll_all(poller, ids)
                logger.info("Sleeping %ds before next poll cycle (%d enrichment runs active)...",
                            interval, poller.scheduler.active_runs)
                await asyncio.sleep(interval)
        finally:
            await poller.close()
    finally:
        await store.close()


def parse_args(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("--once", action="store_true", help="Run one cycle, wait for summaries, and exit")
    p.add_argument("--project", action="append", help="Project id to poll (repeatable); default: all active")
    p.add_argument("--resummarize", action="store_true", help="Retry failed summaries instead of polling")
    p.add_argument("--include-pending", action="store_true", help="With --resummarize, also retry stale pending rows")
    p.add_argument("--debug", action="store_true", help="Debug/verbose")
    return p.parse_args(argv)


if __name__ == "__main__":
    load_dotenv()
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.once or args.resummarize:
        asyncio.run(main_once(args))
    else:
        asyncio.run(loop_runner(args))
