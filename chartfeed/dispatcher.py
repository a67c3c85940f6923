from __future__ import annotations

import time
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from .audit import AuditLogger
from .errors import DecodeError, HttpStatusError, TransportError
from .query import Query


class RequestDispatcher:
    """Single-attempt JSON GET against ``base_url``.

    Every call to :meth:`fetch` issues exactly one request. Retries and
    caching belong to the caller.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.audit = audit
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def build_url(self, query: Query) -> str:
        url = f"{self.base_url}{query.endpoint}"
        if query.params:
            url = f"{url}?{urlencode(query.params)}"
        return url

    async def fetch(self, query: Query) -> Any:
        url = self.build_url(query)
        start = time.monotonic()
        try:
            resp = await self._client.get(url)
        except httpx.TransportError as exc:
            self._log("request_error", f"transport failure for {query.endpoint}", url, error=repr(exc))
            raise TransportError(f"GET {url} failed: {exc!r}") from exc
        elapsed_ms = round((time.monotonic() - start) * 1000.0, 1)
        if not 200 <= resp.status_code < 300:
            self._log(
                "request_error",
                f"HTTP {resp.status_code} for {query.endpoint}",
                url,
                status_code=resp.status_code,
                elapsed_ms=elapsed_ms,
            )
            raise HttpStatusError(resp.status_code, resp.text[:200])
        try:
            data = resp.json()
        except ValueError as exc:
            self._log("request_error", f"undecodable body for {query.endpoint}", url, status_code=resp.status_code)
            raise DecodeError(f"GET {url} returned a non-JSON body", resp.status_code) from exc
        self._log("request", f"GET {query.endpoint}", url, status_code=resp.status_code, elapsed_ms=elapsed_ms)
        return data

    def _log(self, event_type: str, message: str, url: str, **context: Any) -> None:
        if self.audit is not None:
            self.audit.log(event_type, message, {"url": url, **context})

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RequestDispatcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
