# backend/db.py
import asyncio
import asyncpg, ssl
from urllib.parse import urlparse, unquote
from app.settings import settings
from backend.errors import StorageError

# InterfaceError ("pool is closing", "another operation is in progress") is not a PostgresError
_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError, OSError)


class DB:
    def __init__(self, dsn: str | None = None):
        self.dsn = dsn or settings.SUPABASE_DB_URL
        self.pool = None

    async def connect(self):
        if self.pool: return
        if not self.dsn:
            raise StorageError("SUPABASE_DB_URL not configured")
        url = urlparse(self.dsn)
        user = url.username or "postgres"
        password = unquote(url.password) if url.password else None
        host = url.hostname
        port = url.port or 6543
        database = (url.path or "/postgres").lstrip("/") or "postgres"

        ssl_ctx = ssl.create_default_context()

        try:
            self.pool = await asyncpg.create_pool(
                user=user, password=password, host=host, port=port, database=database,
                min_size=1, max_size=10, command_timeout=60, ssl=ssl_ctx,
                timeout=10.0,                   # connect timeout
                statement_cache_size=0          # pgbouncer transaction mode
            )
        except _DB_ERRORS as e:
            raise StorageError(f"postgres connect failed: {e}") from e

    async def close(self):
        if self.pool:
            await self.pool.close()
            self.pool = None

    def _require(self):
        if self.pool is None:
            raise StorageError("postgres store not initialized; call init() first")
        return self.pool

    async def run(self, q: str, *args):
        pool = self._require()
        try:
            async with pool.acquire() as con:
                return [dict(r) for r in await con.fetch(q, *args)]
        except _DB_ERRORS as e:
            raise StorageError(str(e) or type(e).__name__) from e

    async def run_one(self, q: str, *args):
        pool = self._require()
        try:
            async with pool.acquire() as con:
                return await con.fetchval(q, *args)
        except _DB_ERRORS as e:
            raise StorageError(str(e) or type(e).__name__) from e

    async def exec(self, q: str, *args) -> str:
        pool = self._require()
        try:
            async with pool.acquire() as con:
                return await con.execute(q, *args)
        except _DB_ERRORS as e:
            raise StorageError(str(e) or type(e).__name__) from e
