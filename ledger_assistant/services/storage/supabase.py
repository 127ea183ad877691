"""
Supabase Storage Implementation

DESIGN DECISION: We talk to Supabase's REST endpoints (PostgREST for
tables, GoTrue for identity) directly over httpx because:
1. The assistant only needs a filtered select, an insert, and "who is this token"
2. Every handle is bound to one credential and closed after one request
3. No client-side session persistence, so nothing outlives the request

TRADEOFFS:
- No retries: a failed call is terminal for the request
- Store error text is passed through verbatim (operators read it)
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

import httpx
import structlog

from ledger_assistant.config import get_settings
from ledger_assistant.services.storage.interface import (
    PROFILES_TABLE,
    AuthenticationError,
    FilterOp,
    IdentityInterface,
    PrivilegeNotConfiguredError,
    RecordQuery,
    RecordStoreInterface,
    StorageError,
    StoreFactory,
)


logger = structlog.get_logger(__name__)


def _format_value(value: Any) -> str:
    """Render a Python value as a PostgREST filter operand."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def build_params(query: RecordQuery) -> list[tuple[str, str]]:
    """
    Translate a RecordQuery into PostgREST query-string pairs.

    Repeated columns are allowed (e.g. gte + lt on the same date).
    """
    params: list[tuple[str, str]] = [("select", query.columns)]

    for f in query.filters:
        if f.op == FilterOp.IS_NULL:
            params.append((f.column, "is.null"))
        elif f.op == FilterOp.CONTAINS:
            params.append((f.column, "cs." + json.dumps(f.value, default=_json_default)))
        elif f.op == FilterOp.IN:
            joined = ",".join(_format_value(v) for v in f.value)
            params.append((f.column, f"in.({joined})"))
        else:
            params.append((f.column, f"{f.op.value}.{_format_value(f.value)}"))

    if query.order_by:
        direction = "desc" if query.descending else "asc"
        params.append(("order", f"{query.order_by}.{direction}"))

    if query.limit is not None:
        params.append(("limit", str(query.limit)))

    return params


def _error_text(response: httpx.Response) -> str:
    """Best-effort extraction of the store's own error message."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return response.text or f"HTTP {response.status_code}"


class SupabaseRecordStore(RecordStoreInterface):
    """
    PostgREST-backed record store bound to ONE credential.

    `api_key` is the anon key (with the caller's token as bearer) or the
    service-role key (which is then also the bearer).
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        bearer: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {bearer}",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def select(self, query: RecordQuery) -> list[dict[str, Any]]:
        try:
            response = await self._client.get(
                f"/{query.table}",
                params=build_params(query),
            )
        except httpx.HTTPError as e:
            raise StorageError(f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise StorageError(_error_text(response), status_code=response.status_code)

        data = response.json()
        if not isinstance(data, list):
            raise StorageError(f"Unexpected response from {query.table}")

        logger.debug("store_select", table=query.table, rows=len(data))
        return data

    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        try:
            response = await self._client.post(
                f"/{table}",
                content=json.dumps(rows, default=_json_default),
                headers={
                    "Content-Type": "application/json",
                    "Prefer": "return=representation",
                },
            )
        except httpx.HTTPError as e:
            raise StorageError(f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise StorageError(_error_text(response), status_code=response.status_code)

        data = response.json() if response.content else []
        logger.debug("store_insert", table=table, rows=len(rows))
        return data if isinstance(data, list) else [data]

    async def aclose(self) -> None:
        await self._client.aclose()


class SupabaseIdentity(IdentityInterface):
    """GoTrue user lookup plus the `profiles.role` read."""

    def __init__(
        self,
        url: Optional[str] = None,
        anon_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if url is None or anon_key is None or timeout is None:
            settings = get_settings().supabase
            url = url or settings.url
            anon_key = anon_key or settings.anon_key
            timeout = timeout or settings.timeout_seconds
        self._url = url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout
        self._transport = transport

    async def get_user_id(self, token: str) -> str:
        async with httpx.AsyncClient(
            base_url=f"{self._url}/auth/v1",
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(
                    "/user",
                    headers={
                        "apikey": self._anon_key,
                        "Authorization": f"Bearer {token}",
                    },
                )
            except httpx.HTTPError as e:
                raise AuthenticationError(f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise AuthenticationError(_error_text(response), status_code=response.status_code)

        body = response.json()
        user_id = body.get("id") if isinstance(body, dict) else None
        if not user_id:
            raise AuthenticationError("Identity lookup returned no user")
        return str(user_id)

    async def get_profile_role(self, token: str, user_id: str) -> Optional[str]:
        query = (
            RecordQuery(PROFILES_TABLE, columns="role")
            .eq("id", user_id)
            .limit_to(1)
        )
        async with SupabaseRecordStore(
            self._url,
            self._anon_key,
            token,
            timeout=self._timeout,
            transport=self._transport,
        ) as store:
            rows = await store.select(query)

        if not rows:
            return None
        role = rows[0].get("role")
        return role if isinstance(role, str) else None


class SupabaseStoreFactory(StoreFactory):
    """
    Hands out credential-bound Supabase stores.

    The service-role key stays inside this object; callers only ever
    receive a store that uses it.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        anon_key: Optional[str] = None,
        service_role_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if url is None or anon_key is None:
            settings = get_settings().supabase
            url = url or settings.url
            anon_key = anon_key or settings.anon_key
            service_role_key = service_role_key or settings.service_role_key
            timeout = timeout or settings.timeout_seconds
        self._url = url
        self._anon_key = anon_key
        self._service_role_key = service_role_key
        self._timeout = timeout or 15.0
        self._transport = transport

    @property
    def has_privileged_credential(self) -> bool:
        return bool(self._service_role_key)

    def user_store(self, token: str) -> SupabaseRecordStore:
        return SupabaseRecordStore(
            self._url,
            self._anon_key,
            token,
            timeout=self._timeout,
            transport=self._transport,
        )

    def privileged_store(self) -> SupabaseRecordStore:
        if not self._service_role_key:
            raise PrivilegeNotConfiguredError(
                "SUPABASE_SERVICE_ROLE_KEY is not configured"
            )
        return SupabaseRecordStore(
            self._url,
            self._service_role_key,
            self._service_role_key,
            timeout=self._timeout,
            transport=self._transport,
        )
