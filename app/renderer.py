from datetime import timezone
from html import escape
from typing import List, Optional

from backend.models import Commit, SummaryStatus

CSS = """
body{font-family:Inter,Segoe UI,Arial,sans-serif;line-height:1.45;color:#111;margin:0;padding:24px;background:#fafafa}
.card{background:#fff;border-radius:14px;box-shadow:0 1px 4px rgba(0,0,0,.06);padding:20px;margin:0 auto;max-width:920px}
h1{margin:0 0 8px 0;font-size:22px}
ul{margin:0;padding:0;list-style:none}
li{display:flex;gap:12px;padding:12px 0;border-bottom:1px solid #eee}
img.avatar{width:32px;height:32px;border-radius:999px;background:#eee}
a{color:#0a5fff;text-decoration:none}
.muted{color:#666;font-size:12px}
.summary{white-space:pre-wrap;font-size:13px;margin-top:6px}
.pill{display:inline-block;padding:2px 8px;border-radius:999px;font-size:12px;margin-left:6px}
.processing{background:#eef;color:#2457c5}
.failed{background:#fdecea;color:#b3261e}
.empty{background:#f1f1f1;color:#666}
.summarized{background:#e7f6ec;color:#1e7b34}
"""

# (pill label, body shown instead of the raw summary; None = show the summary text)
_STATUS_TEXT = {
    SummaryStatus.PROCESSING: ("Processing summary...", "AI is analyzing this commit..."),
    SummaryStatus.FAILED: ("Summary failed", "Summary generation failed. Will not auto-retry."),
    SummaryStatus.EMPTY: ("No summary available", "No summary available."),
    SummaryStatus.SUMMARIZED: ("Summary ready", None),
}


def _iso(dt):
    if isinstance(dt, str): return dt
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _commit_li(c: Commit, github_url: Optional[str]) -> str:
    label, body = _STATUS_TEXT[c.status]
    link = f"{github_url}/commit/{c.commit_hash}" if github_url else "#"
    avatar = (
        f'<img class="avatar" src="{escape(c.commit_author_avatar)}" alt="avatar">'
        if c.commit_author_avatar else '<div class="avatar"></div>'
    )
    return (
        f"<li>{avatar}<div>"
        f'<div class="muted"><strong>{escape(c.commit_author_name)}</strong> committed '
        f'<a href="{escape(link)}" target="_blank">{escape(c.short_hash)}</a> · {_iso(c.commit_date)}'
        f'<span class="pill {c.status.value}">{label}</span></div>'
        f"<div><strong>{escape(c.commit_message)}</strong></div>"
        f'<div class="summary">{escape(body if body is not None else c.summary)}</div>'
        f"</div></li>"
    )


def render_commit_log(project_id: str, commits: List[Commit], github_url: Optional[str] = None) -> str:
    items = "".join(_commit_li(c, github_url) for c in commits) or '<li class="muted">No commits yet.</li>'
    return (
        "<!doctype html><html><head><meta charset='utf-8'>"
        f"<title>Commits · {escape(project_id)}</title><style>{CSS}</style></head>"
        f"<body><div class='card'><h1>Commit log</h1>"
        f"<div class='muted'>{escape(github_url or project_id)}</div>"
        f"<ul>{items}</ul></div></body></html>"
    )
