# app/settings.py
from __future__ import annotations
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


def _split_csv(s: Optional[str]) -> list[str]:
    """
    Parse simple comma-separated lists from env.
    Example: "a,b , c" -> ["a", "b", "c"]
    Empty/None -> []
    """
    if not s:
        return []
    return [x.strip() for x in s.split(",") if x.strip()]


class Settings(BaseSettings):
    # ----- runtime -----
    LOG_LEVEL: str = Field(default="INFO", alias="LOG_LEVEL")

    # ----- Storage -----
    # REST (Supabase) wins when SUPABASE_URL is set, then Postgres, then local SQLite.
    SUPABASE_URL: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    SUPABASE_SERVICE_ROLE: Optional[str] = Field(default=None, alias="SUPABASE_SERVICE_ROLE")
    SUPABASE_KEY: Optional[str] = Field(default=None, alias="SUPABASE_KEY")  # fallback var
    SUPABASE_DB_URL: Optional[str] = Field(default=None, alias="SUPABASE_DB_URL")
    FORCE_SUPABASE_REST: bool = Field(default=False, alias="FORCE_SUPABASE_REST")
    DB_PATH: str = Field(default="./commitpulse.sqlite", alias="DB_PATH")

    # ----- Integrations -----
    GEMINI_API_KEY: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    GEMINI_MODEL: str = Field(default="gemini-1.5-flash", alias="GEMINI_MODEL")
    GEMINI_EMBED_MODEL: str = Field(default="models/text-embedding-004", alias="GEMINI_EMBED_MODEL")
    GEMINI_TIMEOUT_S: float = Field(default=60.0, alias="GEMINI_TIMEOUT_S")
    GITHUB_TOKEN: Optional[str] = Field(default=None, alias="GITHUB_TOKEN")
    GITHUB_API_URL: str = Field(default="https://api.github.com", alias="GITHUB_API_URL")
    GITHUB_TIMEOUT_S: float = Field(default=10.0, alias="GITHUB_TIMEOUT_S")
    GITHUB_RATE_QPS: float = Field(default=5.0, alias="GITHUB_RATE_QPS")

    # ----- Gemini pacing (free tier: 15 requests/minute) -----
    GEMINI_REQUESTS_PER_MINUTE: int = Field(default=15, alias="GEMINI_REQUESTS_PER_MINUTE")
    GEMINI_DELAY_BETWEEN_REQUESTS_MS: int = Field(default=3000, alias="GEMINI_DELAY_BETWEEN_REQUESTS_MS")
    GEMINI_PRE_REQUEST_DELAY_MS: int = Field(default=1000, alias="GEMINI_PRE_REQUEST_DELAY_MS")
    GEMINI_MAX_RETRIES: int = Field(default=3, alias="GEMINI_MAX_RETRIES")
    GEMINI_BASE_RETRY_DELAY_MS: int = Field(default=2000, alias="GEMINI_BASE_RETRY_DELAY_MS")
    SUMMARY_INPUT_LIMIT: int = Field(default=10_000, alias="SUMMARY_INPUT_LIMIT")

    # ----- Commit polling -----
    COMMITS_PER_BATCH: int = Field(default=3, alias="COMMITS_PER_BATCH")
    DELAY_BETWEEN_BATCHES_MS: int = Field(default=30_000, alias="DELAY_BETWEEN_BATCHES_MS")
    MAX_COMMITS_PER_POLL: int = Field(default=20, alias="MAX_COMMITS_PER_POLL")
    POLL_INTERVAL_SECONDS: int = Field(default=300, alias="POLL_INTERVAL_SECONDS")

    # project ids polled by the runner in addition to every active project in the store
    TRACKED_PROJECTS_CSV: Optional[str] = Field(default=None, alias="TRACKED_PROJECTS")

    # pydantic-settings v2 config
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }

    # ----- Helpers -----
    @property
    def SUPABASE_JWT(self) -> str:
        """Single source of truth for PostgREST auth."""
        return (self.SUPABASE_SERVICE_ROLE or self.SUPABASE_KEY or "").strip()

    @property
    def TRACKED_PROJECTS(self) -> list[str]:
        return _split_csv(self.TRACKED_PROJECTS_CSV)


settings = Settings()
