# core/bridge_api/gemini_client.py
from __future__ import annotations
import asyncio
import logging
import textwrap
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from app.config import PacingConfig
from app.settings import Settings, settings
from backend.errors import ConfigurationError, RateLimitedError, TransportError
from backend.models import SUMMARY_EMPTY, SUMMARY_FAILED

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

EMBEDDING_DIMENSIONS = 768

# Quota exhaustion on the provider side; always worth waiting out.
RATE_LIMIT_ERRORS = (
    google_exceptions.ResourceExhausted,
    google_exceptions.TooManyRequests,
    RateLimitedError,
)
# Transient transport trouble; retried with the same backoff.
TRANSIENT_ERRORS = (
    google_exceptions.DeadlineExceeded,
    google_exceptions.ServiceUnavailable,
    asyncio.TimeoutError,
    TransportError,
)

COMMIT_SYSTEM_PROMPT = textwrap.dedent(
    """\
    You are an expert programmer, and you are trying to summarize a git diff.
    For every file, there are a few metadata lines, like (for example):
    '''
    diff --git a/lib/index.js b/lib/index.js
    index aadf691..bfef603 100644
    --- a/lib/index.js
    +++ b/lib/index.js
    '''
    This means that 'lib/index.js' was modified in this commit. Note that this is only an example.
    Then there is a specifier of the lines that were modified.
    A line starting with '+' means it was added.
    A line starting with '-' means that line was deleted.
    A line that starts with neither '+' nor '-' is code given for context and better understanding.
    It is not part of the diff.

    EXAMPLE SUMMARY COMMENTS:
    '''
    * Raised the amount of returned recordings from '10' to '100' [packages/server/recordings_api.ts], [packages/server/constants.ts]
    * Fixed a typo in the github action name [.github/workflows/gpt-commit-summarizer.yml]
    * Moved the 'octokit' initialization to a separate file [src/octokit.ts], [src/index.ts]
    * Added an OpenAI API for completions [packages/utils/apis/openai.ts]
    * Lowered numeric tolerance for test files
    '''
    Most commits will have fewer comments than this example list.
    The last comment does not include the file names, because there were more than two relevant files in the hypothetical commit.
    Do not include parts of the example in your summary.
    It is given only as an example of appropriate comments.
    """
)

CODE_SYSTEM_PROMPT = (
    "You are an intelligent senior software engineer who specialises in onboarding "
    "junior software engineers onto projects."
)


# ---------- public helpers ----------

def gemini_is_active(s: Settings | None = None) -> bool:
    """True when a Gemini key is configured."""
    key = (s or settings).GEMINI_API_KEY
    return bool(key and str(key).strip())


class GeminiClient:
    """
    Summaries and embeddings through Gemini, paced for the free-tier quota.

    Every public call returns a value: summaries fall back to SUMMARY_FAILED and
    embeddings to a zero vector, so one bad item cannot abort a batch. The only
    raise is ConfigurationError from `from_settings` when no key is set.

    `model` needs an async `generate_content_async(parts)` returning an object with
    `.text`; `embedder` is `async (text) -> {"embedding": [...]}`.
    """

    def __init__(
        self,
        model: Any,
        *,
        embedder: Optional[Callable[[str], Awaitable[Any]]] = None,
        pacing: Optional[PacingConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        timeout_s: float = 60.0,
    ):
        self.model = model
        self.embedder = embedder
        self.pacing = pacing or PacingConfig()
        self._sleep = sleep
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, s: Settings | None = None, pacing: Optional[PacingConfig] = None) -> "GeminiClient":
        s = s or settings
        if not gemini_is_active(s):
            raise ConfigurationError("GEMINI_API_KEY is not configured")

        genai.configure(api_key=s.GEMINI_API_KEY)
        model = genai.GenerativeModel(s.GEMINI_MODEL)

        async def _embed(text: str) -> Any:
            return await genai.embed_content_async(model=s.GEMINI_EMBED_MODEL, content=text)

        _LOG.info("Gemini client created: model=%s embed_model=%s", s.GEMINI_MODEL, s.GEMINI_EMBED_MODEL)
        return cls(
            model,
            embedder=_embed,
            pacing=pacing or PacingConfig.from_settings(s),
            timeout_s=s.GEMINI_TIMEOUT_S,
        )

    # ---------- retry machinery ----------

    async def retry_with_backoff(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run `fn`, retrying rate-limit and transient failures up to `max_retries` times,
        waiting base * 2**attempt between tries. Other errors propagate at once.
        """
        max_retries = self.pacing.max_retries
        for attempt in range(max_retries + 1):
            try:
                return await fn()
            except RATE_LIMIT_ERRORS + TRANSIENT_ERRORS as e:
                if attempt == max_retries:
                    raise
                wait_ms = self.pacing.retry_delay_ms(attempt)
                _LOG.warning(
                    "%s from Gemini, waiting %dms before retry %d/%d",
                    type(e).__name__, wait_ms, attempt + 1, max_retries,
                )
                await self._sleep(wait_ms / 1000)
        raise RuntimeError("unreachable: retry loop exited without result")

    async def _generate(self, parts: List[str]) -> str:
        if self.pacing.pre_request_delay_ms:
            await self._sleep(self.pacing.pre_request_delay_ms / 1000)
        # a hung call raises asyncio.TimeoutError, which is retried like any transient failure
        response = await self.retry_with_backoff(
            lambda: asyncio.wait_for(self.model.generate_content_async(parts), self.timeout_s)
        )
        return (response.text or "").strip()

    # ---------- summaries ----------

    async def summarize_commit(self, diff: str) -> str:
        diff = (diff or "")[: self.pacing.input_limit]
        try:
            text = await self._generate(
                [COMMIT_SYSTEM_PROMPT, f"Please summarize the following diff file:\n\n{diff}"]
            )
        except Exception:
            _LOG.exception("Commit summary generation failed")
            return SUMMARY_FAILED
        return text or SUMMARY_EMPTY

    async def summarize_code(self, source: str, code: str) -> str:
        _LOG.info("getting summary for %s", source)
        code = (code or "")[: self.pacing.input_limit]
        prompt = (
            f"You are onboarding a junior software engineer and explaining to them the purpose of the {source} file.\n"
            f"Here is the code:\n---\n{code}\n---\n"
            "Give a summary of no more than 100 words of the code above."
        )
        try:
            text = await self._generate([CODE_SYSTEM_PROMPT, prompt])
        except Exception:
            _LOG.exception("Code summary generation failed for %s", source)
            return SUMMARY_FAILED
        return text or SUMMARY_EMPTY

    # ---------- embeddings ----------

    async def embed(self, text: str) -> List[float]:
        if self.embedder is None:
            _LOG.debug("No embedder configured, returning zero vector.")
            return [0.0] * EMBEDDING_DIMENSIONS
        try:
            result = await self.retry_with_backoff(lambda: asyncio.wait_for(self.embedder(text), self.timeout_s))
            values = result["embedding"] if isinstance(result, dict) else result.embedding
            return [float(v) for v in values]
        except Exception:
            _LOG.exception("Embedding generation failed")
            return [0.0] * EMBEDDING_DIMENSIONS
