import logging

from backend.enrich.pipeline import SummaryScheduler
from backend.errors import NotConfiguredError
from backend.models import SUMMARY_FAILED, SUMMARY_PENDING
from backend.store_factory import CommitStore

logger = logging.getLogger(__name__)


async def resummarize_failed(
    store: CommitStore,
    scheduler: SummaryScheduler,
    project_id: str,
    *,
    include_pending: bool = False,
    wait: bool = False,
) -> int:
    """
    Explicit remediation for commits stuck on SUMMARY_FAILED.

    Polls never revisit a stored hash, so this is the only way a failed summary
    gets another attempt. `include_pending` also picks up rows left pending by a
    process that died mid-batch. Returns the number of commits queued.
    """
    github_url = await store.get_project_url(project_id)
    if not github_url:
        raise NotConfiguredError(f"Project {project_id} has no GitHub URL configured")

    wanted = [SUMMARY_FAILED] + ([SUMMARY_PENDING] if include_pending else [])
    commits = await store.list_commits_with_summary(project_id, wanted)
    if not commits:
        logger.info("No failed summaries to retry for project %s", project_id)
        return 0

    for c in commits:
        await store.update_commit_summary(project_id, c.commit_hash, SUMMARY_PENDING)

    logger.info("Re-queued %d commits for summary generation (project %s)", len(commits), project_id)
    if wait:
        await scheduler.run(project_id, github_url, commits)
    else:
        scheduler.spawn(project_id, github_url, commits)
    return len(commits)
