from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Dict, Mapping, Optional

from .audit import AuditLogger
from .cache import QueryCache
from .config import ClientSettings, api_base
from .dispatcher import RequestDispatcher
from .query import Query


class MarketDataClient:
    def __init__(
        self,
        cache: QueryCache,
        settings: Optional[ClientSettings] = None,
        dispatcher: Optional[RequestDispatcher] = None,
    ) -> None:
        self.cache = cache
        self.settings = settings or ClientSettings()
        self.dispatcher = dispatcher
        self._sweeper: Optional["asyncio.Task[None]"] = None

    @classmethod
    def from_settings(cls, settings: ClientSettings, audit: Optional[AuditLogger] = None) -> "MarketDataClient":
        dispatcher = RequestDispatcher(api_base(settings), timeout=settings.http.timeout_seconds, audit=audit)
        cache = QueryCache(dispatcher, ttl=settings.cache.ttl_seconds, audit=audit)
        return cls(cache, settings=settings, dispatcher=dispatcher)

    async def get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.cache.lookup_or_fetch(Query(endpoint, params))

    def invalidate(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        return self.cache.invalidate(Query(endpoint, params))

    async def get_symbols(self) -> Any:
        return await self.get("/symbols")

    async def get_features(self) -> Any:
        return await self.get("/features")

    async def get_chart_data(
        self,
        symbol: str,
        timeframe: str,
        pane1: Optional[str] = None,
        pane2: Optional[str] = None,
    ) -> Any:
        params: Dict[str, Any] = {
            "symbol": symbol,
            "timeframe": timeframe,
            "pane1": pane1 or self.settings.chart.default_pane1,
            "pane2": pane2 or self.settings.chart.default_pane2,
        }
        return await self.get("/chart-data", params)

    async def get_health(self) -> Any:
        return await self.get("/health")

    def start_sweeper(self) -> None:
        interval = self.settings.cache.sweep_interval_seconds
        if self._sweeper is None and interval > 0:
            self._sweeper = asyncio.get_running_loop().create_task(self.cache.run_sweeper(interval))

    async def aclose(self) -> None:
        if self._sweeper is not None:
            sweeper, self._sweeper = self._sweeper, None
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        if self.dispatcher is not None:
            await self.dispatcher.aclose()

    async def __aenter__(self) -> "MarketDataClient":
        self.start_sweeper()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
