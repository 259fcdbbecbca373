import pytest

from backend.enrich.worker import resummarize_failed
from backend.errors import NotConfiguredError
from backend.models import SUMMARY_FAILED, SUMMARY_PENDING, CommitInfo
from tests.conftest import REPO_URL


@pytest.fixture
async def project(store):
    project = await store.create_project("widgets", REPO_URL)
    await store.insert_commits(
        project.id, [CommitInfo(commit_hash=s) for s in ("ok", "bad", "stuck")], SUMMARY_PENDING
    )
    await store.update_commit_summary(project.id, "ok", "* Fine")
    await store.update_commit_summary(project.id, "bad", SUMMARY_FAILED)
    return project


async def summaries(store, project):
    return {c.commit_hash: c.summary for c in await store.list_commits(project.id)}


async def test_only_failed_rows_are_retried(store, project, scheduler, github_api, fake_model):
    queued = await resummarize_failed(store, scheduler, project.id, wait=True)

    assert queued == 1
    assert github_api.diff_requests == ["bad"]
    got = await summaries(store, project)
    assert got == {"ok": "* Fine", "bad": fake_model.default, "stuck": SUMMARY_PENDING}


async def test_include_pending_picks_up_stale_rows(store, project, scheduler, github_api):
    queued = await resummarize_failed(store, scheduler, project.id, include_pending=True, wait=True)

    assert queued == 2
    assert set(github_api.diff_requests) == {"bad", "stuck"}


async def test_detached_retry_resets_rows_to_pending_first(store, project, scheduler):
    queued = await resummarize_failed(store, scheduler, project.id)

    assert queued == 1
    assert (await summaries(store, project))["bad"] == SUMMARY_PENDING
    await scheduler.drain()
    assert (await summaries(store, project))["bad"] not in (SUMMARY_PENDING, SUMMARY_FAILED)


async def test_nothing_to_retry(store, scheduler):
    project = await store.create_project("clean", REPO_URL)
    assert await resummarize_failed(store, scheduler, project.id) == 0


async def test_unknown_project(store, scheduler):
    with pytest.raises(NotConfiguredError):
        await resummarize_failed(store, scheduler, "nope")
