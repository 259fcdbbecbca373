from backend.models import SUMMARY_FAILED, SUMMARY_PENDING, CommitInfo
from tests.conftest import REPO_URL


def info(sha, date="2024-05-01T12:00:00Z"):
    return CommitInfo(commit_hash=sha, commit_message=f"msg {sha}", commit_author_name="Ada", commit_date=date)


async def test_project_round_trip(store):
    project = await store.create_project("widgets", REPO_URL)
    assert await store.get_project_url(project.id) == REPO_URL
    assert await store.get_project_url("missing") is None


async def test_active_projects_skip_archived(store):
    live = await store.create_project("live", REPO_URL)
    gone = await store.create_project("gone", REPO_URL)
    await store.conn.execute("UPDATE projects SET deleted_at = '2024-01-01T00:00:00Z' WHERE id = ?", (gone.id,))
    await store.conn.commit()

    assert [p.id for p in await store.list_active_projects()] == [live.id]


async def test_bulk_insert_ignores_duplicate_hashes(store):
    project = await store.create_project("widgets", REPO_URL)

    assert await store.insert_commits(project.id, [info("a"), info("b")], SUMMARY_PENDING) == 2
    assert await store.insert_commits(project.id, [info("b"), info("c")], SUMMARY_PENDING) == 1
    assert await store.list_commit_hashes(project.id) == {"a", "b", "c"}


async def test_same_hash_allowed_in_different_projects(store):
    p1 = await store.create_project("one", REPO_URL)
    p2 = await store.create_project("two", REPO_URL)
    await store.insert_commits(p1.id, [info("a")], SUMMARY_PENDING)
    assert await store.insert_commits(p2.id, [info("a")], SUMMARY_PENDING) == 1


async def test_update_is_keyed_by_project_and_hash(store):
    p1 = await store.create_project("one", REPO_URL)
    p2 = await store.create_project("two", REPO_URL)
    await store.insert_commits(p1.id, [info("a")], SUMMARY_PENDING)
    await store.insert_commits(p2.id, [info("a")], SUMMARY_PENDING)

    assert await store.update_commit_summary(p1.id, "a", "* Did a thing") == 1

    (c1,) = await store.list_commits(p1.id)
    (c2,) = await store.list_commits(p2.id)
    assert c1.summary == "* Did a thing"
    assert c2.summary == SUMMARY_PENDING


async def test_list_commits_newest_first(store):
    project = await store.create_project("widgets", REPO_URL)
    await store.insert_commits(
        project.id,
        [info("old", "2024-01-01T00:00:00Z"), info("new", "2024-06-01T00:00:00Z"), info("mid", "2024-03-01T00:00:00Z")],
        SUMMARY_PENDING,
    )

    commits = await store.list_commits(project.id)
    assert [c.commit_hash for c in commits] == ["new", "mid", "old"]
    assert [c.commit_hash for c in await store.list_commits(project.id, limit=1)] == ["new"]


async def test_list_commits_with_summary(store):
    project = await store.create_project("widgets", REPO_URL)
    await store.insert_commits(project.id, [info("a"), info("b"), info("c")], SUMMARY_PENDING)
    await store.update_commit_summary(project.id, "a", SUMMARY_FAILED)
    await store.update_commit_summary(project.id, "b", "* ok")

    failed = await store.list_commits_with_summary(project.id, [SUMMARY_FAILED])
    assert [c.commit_hash for c in failed] == ["a"]
    both = await store.list_commits_with_summary(project.id, [SUMMARY_FAILED, SUMMARY_PENDING])
    assert {c.commit_hash for c in both} == {"a", "c"}
    assert await store.list_commits_with_summary(project.id, []) == []
