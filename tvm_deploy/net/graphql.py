"""
GraphQL client for the network's query endpoint.

This adapter is intentionally small. It provides:
- an async GraphQL transport over HTTP(S) built on httpx
- the three read operations the core needs:
  * query(query, variables)              : raw GraphQL query, returns `data`
  * query_collection(collection, ...)    : `<collection>(filter, limit) { <result> }`
  * wait_for_collection(collection, ...) : same, with a server-side `timeout`
    so the call returns once a matching row appears

Notes
-----
* Requests are attempted once. Transport failures, non-2xx statuses and
  GraphQL `errors` arrays are mapped to NetworkError; retries are the caller's
  decision.
* The endpoint is `<ENDPOINT>/graphql`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import httpx

from ..errors import NetworkError
from ..logging import get_logger

log = get_logger(__name__)

JsonDict = Dict[str, Any]

_FILTER_TYPES = {
    "accounts": "AccountFilter",
    "transactions": "TransactionFilter",
    "messages": "MessageFilter",
    "blocks": "BlockFilter",
}


def _filter_type(collection: str) -> str:
    try:
        return _FILTER_TYPES[collection]
    except KeyError:
        raise NetworkError(f"unsupported collection {collection!r}", operation="query_collection") from None


def _build_headers(extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    hdrs = {
        "content-type": "application/json",
        "accept": "application/json",
    }
    if extra:
        hdrs.update(extra)
    return hdrs


def collection_query(collection: str, result: str, *, with_timeout: bool = False) -> str:
    args = ["$filter: %s" % _filter_type(collection), "$limit: Int"]
    call = ["filter: $filter", "limit: $limit"]
    if with_timeout:
        args.append("$timeout: Float")
        call.append("timeout: $timeout")
    return "query(%s) { %s(%s) { %s } }" % (", ".join(args), collection, ", ".join(call), result)


class GraphQLClient:
    """
    Minimal async GraphQL client.

    Safe to share between concurrent flows: the only state is the underlying
    httpx connection pool.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_s: float = 30.0,
        headers: Optional[Mapping[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._timeout_s = float(timeout_s)
        self._headers = _build_headers(headers)
        self._client = client
        self._owns_client = client is None

    @property
    def url(self) -> str:
        return self._url

    # ---------- lifecycle ----------

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s, headers=self._headers)
            self._owns_client = True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GraphQLClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    # ---------- core transport ----------

    async def query(self, query: str, variables: Optional[Mapping[str, Any]] = None) -> JsonDict:
        """
        Run one GraphQL query and return its `data` object.
        """
        if self._client is None:
            await self.start()
        assert self._client is not None  # for type-checkers

        payload = {"query": query, "variables": dict(variables or {})}
        try:
            resp = await self._client.post(self._url, json=payload)
        except httpx.TimeoutException as e:
            raise NetworkError(f"request timed out: {e}", operation="query") from e
        except httpx.TransportError as e:
            raise NetworkError(f"transport failure: {e}", operation="query") from e

        status = resp.status_code
        if status == 504:
            raise NetworkError("network is inaccessible (HTTP 504)", operation="query", code=status)
        if status >= 400:
            raise NetworkError(f"HTTP {status}: {resp.text[:256]!r}", operation="query", code=status)
        try:
            body = resp.json()
        except ValueError as e:
            raise NetworkError(
                "non-JSON response from GraphQL endpoint", operation="query", code=status, data=resp.text[:256]
            ) from e

        if not isinstance(body, dict):
            raise NetworkError("malformed GraphQL response", operation="query", data=body)
        errors = body.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else errors
            msg = first.get("message", "unknown error") if isinstance(first, dict) else str(first)
            raise NetworkError(f"GraphQL error: {msg}", operation="query", data=errors)
        data = body.get("data")
        if not isinstance(data, dict):
            raise NetworkError("GraphQL response has no data", operation="query", data=body)
        log.debug("graphql_query", url=self._url, variables=list(payload["variables"]))
        return data

    # ---------- collections ----------

    async def query_collection(
        self,
        collection: str,
        filter: Mapping[str, Any],
        result: str,
        limit: Optional[int] = None,
    ) -> List[JsonDict]:
        q = collection_query(collection, result)
        data = await self.query(q, {"filter": dict(filter), "limit": limit})
        rows = data.get(collection)
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise NetworkError(f"{collection} is not a list", operation="query_collection", data=rows)
        return rows

    async def wait_for_collection(
        self,
        collection: str,
        filter: Mapping[str, Any],
        result: str,
        timeout_ms: Optional[int] = None,
    ) -> Optional[JsonDict]:
        q = collection_query(collection, result, with_timeout=True)
        data = await self.query(q, {"filter": dict(filter), "limit": 1, "timeout": timeout_ms})
        rows = data.get(collection) or []
        if not isinstance(rows, list):
            raise NetworkError(f"{collection} is not a list", operation="wait_for_collection", data=rows)
        return rows[0] if rows else None


__all__ = ["GraphQLClient", "collection_query"]
