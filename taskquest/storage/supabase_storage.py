"""
Supabase (PostgREST) storage backend.

Talks to the Supabase REST endpoint with httpx. Filters, ordering and
upserts are translated to PostgREST query syntax; stored procedures are
invoked through ``/rest/v1/rpc/<name>``.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Sequence

import httpx
import structlog

from .base import (
    Filter,
    Ordering,
    RecordNotFoundError,
    StorageBackend,
    StorageError,
    validate_filters,
)

logger = structlog.get_logger(__name__)

# Postgres no_data_found, raised by procedures whose target row is missing
NOT_FOUND_CODE = "P0002"


class SupabaseStorage(StorageBackend):
    """
    PostgREST implementation of the storage backend.

    Attributes:
        rest_url: ``<project>/rest/v1`` base URL
        api_key: Service role key, sent as both apikey and bearer token
    """

    def __init__(
        self,
        rest_url: str,
        api_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not rest_url or not api_key:
            raise StorageError("Supabase URL and key are required for the supabase backend")

        self.rest_url = rest_url.rstrip("/")
        self.api_key = api_key
        self._client = httpx.Client(
            base_url=self.rest_url,
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
        )

        logger.info("supabase_storage_initialized", rest_url=self.rest_url)

    def close(self) -> None:
        self._client.close()

    # =========================================================================
    # StorageBackend
    # =========================================================================

    def query(
        self,
        table: str,
        filters: Optional[Sequence[Filter]] = None,
        ordering: Optional[Sequence[Ordering]] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        params: list[tuple[str, str]] = [("select", "*")]
        params.extend(self._filter_params(filters))
        if ordering:
            params.append(
                (
                    "order",
                    ",".join(f"{column}.{'asc' if asc else 'desc'}" for column, asc in ordering),
                )
            )
        if limit is not None:
            params.append(("limit", str(int(limit))))

        rows = self._request("GET", f"/{table}", params=params)
        logger.debug("supabase_query", table=table, rows=len(rows or []))
        return rows or []

    def rpc(self, function_name: str, params: Optional[dict] = None) -> Any:
        result = self._request("POST", f"/rpc/{function_name}", body=params or {})
        logger.debug("supabase_rpc", function=function_name)
        return result

    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        if not rows:
            return []
        return self._request(
            "POST",
            f"/{table}",
            body=rows,
            headers={"Prefer": "return=representation"},
        ) or []

    def upsert(
        self,
        table: str,
        rows: list[dict],
        on_conflict: Optional[Sequence[str]] = None,
    ) -> list[dict]:
        if not rows:
            return []
        params = [("on_conflict", ",".join(on_conflict))] if on_conflict else None
        return self._request(
            "POST",
            f"/{table}",
            params=params,
            body=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        ) or []

    def update(
        self,
        table: str,
        values: dict,
        filters: Sequence[Filter],
    ) -> list[dict]:
        return self._request(
            "PATCH",
            f"/{table}",
            params=self._filter_params(filters),
            body=values,
            headers={"Prefer": "return=representation"},
        ) or []

    # =========================================================================
    # Helpers
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[list[tuple[str, str]]] = None,
        body: Any = None,
        headers: Optional[dict] = None,
    ) -> Any:
        content = None
        request_headers = dict(headers or {})
        if body is not None:
            content = json.dumps(body, default=_json_default)
            request_headers["Content-Type"] = "application/json"

        try:
            response = self._client.request(
                method, path, params=params, content=content, headers=request_headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "supabase_request_failed",
                method=method,
                path=path,
                status_code=e.response.status_code,
                error=e.response.text,
            )
            not_found = _error_code(e.response) == NOT_FOUND_CODE
            error_cls = RecordNotFoundError if not_found else StorageError
            raise error_cls(
                f"{method} {path} failed with {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("supabase_request_error", method=method, path=path, error=str(e))
            raise StorageError(f"{method} {path} failed: {e}") from e

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _filter_params(filters: Optional[Sequence[Filter]]) -> list[tuple[str, str]]:
        params = []
        for column, op, value in validate_filters(filters):
            if op == "in":
                rendered = ",".join(_render(v) for v in (value or []))
                params.append((column, f"in.({rendered})"))
            elif value is None and op in ("eq", "neq"):
                params.append((column, "is.null" if op == "eq" else "not.is.null"))
            else:
                params.append((column, f"{op}.{_render(value)}"))
        return params


def _render(value: Any) -> str:
    """Render a filter value in PostgREST syntax."""
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _error_code(response: httpx.Response) -> Optional[str]:
    """PostgREST error bodies carry the Postgres SQLSTATE under ``code``."""
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("code") if isinstance(body, dict) else None
