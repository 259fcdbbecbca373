from backend.errors import ErrorKind, FetchTimeoutError, PulseError, RateLimitedError, TransportError
from backend.models import (
    SUMMARY_EMPTY,
    SUMMARY_FAILED,
    SUMMARY_PENDING,
    Commit,
    CommitInfo,
    PollResult,
    SummaryStatus,
    summary_status,
)


def test_summary_status_mapping():
    assert summary_status(SUMMARY_PENDING) is SummaryStatus.PROCESSING
    assert summary_status(SUMMARY_FAILED) is SummaryStatus.FAILED
    assert summary_status(SUMMARY_EMPTY) is SummaryStatus.EMPTY
    assert summary_status("* Fixed the parser") is SummaryStatus.SUMMARIZED


def test_new_commit_defaults_to_pending():
    c = Commit(project_id="p", commit_hash="abc123def456")
    assert c.status is SummaryStatus.PROCESSING
    assert c.short_hash == "abc123de"


def test_commit_info_parses_github_timestamp():
    c = CommitInfo(commit_hash="a", commit_date="2024-05-01T12:00:00Z")
    assert c.commit_date.year == 2024
    assert c.commit_date.utcoffset().total_seconds() == 0


def test_poll_result_serializes_total_fetched_alias():
    assert PollResult(written=3, total_fetched=5).model_dump(by_alias=True) == {"written": 3, "totalFetched": 5}


def test_errors_carry_kind():
    assert RateLimitedError("x", retry_after=3).kind is ErrorKind.RATE_LIMITED
    assert RateLimitedError().retry_after is None
    timeout = FetchTimeoutError("slow")
    assert isinstance(timeout, TransportError)
    assert timeout.kind is ErrorKind.TIMEOUT


def test_unclassified_error_is_internal_not_transport():
    err = PulseError("something odd")
    assert err.kind is ErrorKind.INTERNAL
    assert err.message == "something odd"
