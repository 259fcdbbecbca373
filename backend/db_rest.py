# backend/db_rest.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

import httpx

from app.settings import settings
from backend.errors import StorageError

# Timeouts
_DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0, read=20.0, write=10.0)


class SupabaseREST:
    """
    Minimal async PostgREST wrapper used by the commit store.
    Methods:
      - select(table, params) -> list
      - insert(table, payload, *, ignore_duplicates=False, on_conflict=None, return_representation=True)
      - update(table, filters, payload) -> list of updated rows
    Every HTTP or network failure surfaces as StorageError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.SUPABASE_URL or "").rstrip("/")
        if not self.base_url:
            raise StorageError("SUPABASE_URL not configured")
        # prefer JWT if available for privileged actions
        self.api_key = api_key or settings.SUPABASE_JWT or None
        self._transport = transport

    def _auth_headers(self) -> Dict[str, str]:
        h: Dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            h["apikey"] = self.api_key
            h["Authorization"] = f"Bearer {self.api_key}"
        return h

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json_payload: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.base_url}/rest/v1/{path.lstrip('/')}"
        hdrs = self._auth_headers()
        if headers:
            hdrs.update(headers)

        try:
            async with httpx.AsyncClient(timeout=_DEFAULT_TIMEOUT, transport=self._transport) as client:
                resp = await client.request(method, url, params=params, json=json_payload, headers=hdrs)
        except httpx.HTTPError as e:
            raise StorageError(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            raise StorageError(f"{method} {path} failed: {resp.status_code} {body}")

        if resp.status_code == 204 or not resp.content:
            return []
        return resp.json()

    # -------------------- convenience --------------------

    async def select(self, table: str, params: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """`params` holds PostgREST query parameters, e.g. {"select": "id", "limit": "1"}."""
        return await self._request("GET", table, params=params or {})

    async def insert(
        self,
        table: str,
        payload: Union[Dict[str, Any], List[Dict[str, Any]]],
        *,
        ignore_duplicates: bool = False,
        on_conflict: Optional[str] = None,
        return_representation: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Insert rows into a table.
        - ignore_duplicates: rows hitting `on_conflict` are skipped (Prefer: resolution=ignore-duplicates)
        - on_conflict: comma-separated column names passed as query param on_conflict=col1,col2
        """
        prefers: List[str] = []
        if ignore_duplicates:
            prefers.append("resolution=ignore-duplicates")
        prefers.append(f"return={'representation' if return_representation else 'minimal'}")

        params: Dict[str, str] = {}
        if on_conflict:
            params["on_conflict"] = on_conflict

        return await self._request(
            "POST", table, params=params, json_payload=payload, headers={"Prefer": ", ".join(prefers)}
        )

    async def update(
        self,
        table: str,
        filters: Dict[str, str],
        payload: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        """filters are PostgREST filter expressions, e.g. {"id": "eq.123"}."""
        return await self._request(
            "PATCH",
            table,
            params=dict(filters),
            json_payload=payload,
            headers={"Prefer": "return=representation"},
        )
