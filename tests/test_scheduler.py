import logging

import pytest

from app.config import PacingConfig
from backend.enrich.pipeline import SummaryScheduler
from backend.errors import StorageError
from backend.ingest.diff import DiffFetcher
from backend.models import SUMMARY_FAILED, SUMMARY_PENDING, CommitInfo
from core.bridge_api.gemini_client import GeminiClient
from tests.conftest import REPO_URL, FakeModel, SleepRecorder


def infos(*shas):
    return [CommitInfo(commit_hash=s) for s in shas]


@pytest.fixture
async def project(store):
    return await store.create_project("widgets", REPO_URL)


async def seed(store, project, shas):
    commits = infos(*shas)
    await store.insert_commits(project.id, commits, SUMMARY_PENDING)
    return commits


async def summaries(store, project):
    return {c.commit_hash: c.summary for c in await store.list_commits(project.id)}


async def test_every_commit_gets_summary(store, project, scheduler, fake_model):
    commits = await seed(store, project, ["a", "b", "c", "d"])

    report = await scheduler.run(project.id, REPO_URL, commits)

    assert report.summarized == 4 and report.failed == 0 and report.batches == 2
    assert set((await summaries(store, project)).values()) == {fake_model.default}


async def test_failed_diff_does_not_abort_batch(store, project, scheduler, github_api):
    commits = await seed(store, project, ["one", "two", "three"])
    github_api.diff_status["two"] = 404

    report = await scheduler.run(project.id, REPO_URL, commits)

    got = await summaries(store, project)
    assert got["two"] == SUMMARY_FAILED
    assert got["one"] != SUMMARY_PENDING and got["one"] != SUMMARY_FAILED
    assert got["three"] != SUMMARY_PENDING and got["three"] != SUMMARY_FAILED
    assert (report.summarized, report.failed) == (2, 1)


async def test_diff_timeout_becomes_failure_sentinel(store, project, scheduler, github_api):
    commits = await seed(store, project, ["a", "slow"])
    github_api.diff_timeouts.add("slow")

    await scheduler.run(project.id, REPO_URL, commits)

    assert (await summaries(store, project))["slow"] == SUMMARY_FAILED


async def test_summarizer_error_ends_with_failure_sentinel(store, project, scheduler, fake_model):
    commits = await seed(store, project, ["a"])
    fake_model.outcomes = [RuntimeError("model exploded")]

    report = await scheduler.run(project.id, REPO_URL, commits)

    assert (await summaries(store, project))["a"] == SUMMARY_FAILED
    assert report.failed == 1


async def test_items_processed_sequentially_in_fetch_order(store, project, scheduler, github_api, fake_model):
    commits = await seed(store, project, ["n5", "n4", "n3", "n2", "n1"])

    await scheduler.run(project.id, REPO_URL, commits)

    assert github_api.diff_requests == ["n5", "n4", "n3", "n2", "n1"]
    assert [call[1].split("+added ")[-1].strip() for call in fake_model.calls] == ["n5", "n4", "n3", "n2", "n1"]


async def test_pacing_between_items_and_batches(store, project, github, gemini):
    sleeps = SleepRecorder()
    pacing = PacingConfig(commits_per_batch=3, delay_between_requests_ms=3000, delay_between_batches_ms=30_000)
    scheduler = SummaryScheduler(store, DiffFetcher(github), gemini, pacing, sleep=sleeps)
    commits = await seed(store, project, ["a", "b", "c", "d", "e", "f", "g"])

    report = await scheduler.run(project.id, REPO_URL, commits)

    assert sleeps.calls == [3.0, 3.0, 30.0, 3.0, 3.0, 30.0]
    assert report.batches == 3


async def test_single_commit_has_no_delay(store, project, scheduler, sleeps):
    commits = await seed(store, project, ["a"])
    await scheduler.run(project.id, REPO_URL, commits)
    assert sleeps.calls == []


class FlakyStore:
    """Delegates to the real store but fails the summary update for one hash."""

    def __init__(self, inner, bad_hash, exc):
        self.inner = inner
        self.bad_hash = bad_hash
        self.exc = exc

    async def update_commit_summary(self, project_id, commit_hash, summary):
        if commit_hash == self.bad_hash:
            raise self.exc
        return await self.inner.update_commit_summary(project_id, commit_hash, summary)


async def test_storage_failure_on_one_item_keeps_going(store, project, github, gemini):
    flaky = FlakyStore(store, "b", StorageError("disk full"))
    scheduler = SummaryScheduler(flaky, DiffFetcher(github), gemini, PacingConfig.immediate(), sleep=SleepRecorder())
    commits = await seed(store, project, ["a", "b", "c"])

    report = await scheduler.run(project.id, REPO_URL, commits)

    got = await summaries(store, project)
    assert got["b"] == SUMMARY_PENDING
    assert got["c"] != SUMMARY_PENDING
    assert (report.summarized, report.failed) == (2, 1)


async def test_spawned_run_completes_in_background(store, project, scheduler):
    commits = await seed(store, project, ["a", "b"])

    task = scheduler.spawn(project.id, REPO_URL, commits)
    assert scheduler.active_runs == 1
    await scheduler.drain()

    assert task.done()
    assert scheduler.active_runs == 0
    assert SUMMARY_PENDING not in (await summaries(store, project)).values()


async def test_spawned_run_failure_goes_to_log(store, project, github, caplog):
    flaky = FlakyStore(store, "a", RuntimeError("unexpected"))
    scheduler = SummaryScheduler(
        flaky,
        DiffFetcher(github),
        GeminiClient(FakeModel(), pacing=PacingConfig.immediate()),
        PacingConfig.immediate(),
        sleep=SleepRecorder(),
    )
    commits = await seed(store, project, ["a"])

    with caplog.at_level(logging.ERROR, logger="backend.enrich.pipeline"):
        scheduler.spawn(project.id, REPO_URL, commits)
        await scheduler.drain()

    assert "Background summary processing failed" in caplog.text
