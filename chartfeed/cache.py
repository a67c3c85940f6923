from __future__ import annotations

import asyncio
import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set

from .audit import AuditLogger
from .query import Query


class Dispatcher(Protocol):
    def fetch(self, query: Query) -> Awaitable[Any]: ...


class EntryState(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass
class CacheEntry:
    query: Query
    created_at: float
    future: "asyncio.Future[Any]"
    state: EntryState = EntryState.PENDING
    value: Any = None
    error: Optional[BaseException] = None
    subscribers: int = 0
    task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)

    def age(self, now: float) -> float:
        return now - self.created_at


def _consume_outcome(fut: "asyncio.Future[Any]") -> None:
    # every subscriber may have gone away; mark the exception as retrieved
    if not fut.cancelled():
        fut.exception()


class QueryCache:
    """De-duplicating TTL cache in front of a dispatcher.

    At most one fetch is in flight per :class:`Query`. Callers that arrive
    while it runs subscribe to the same future and observe equal values or
    the same exception. Each caller gets its own deep copy of the decoded
    value, so mutating a result never alters the cache. Ready entries are
    served until they are ``ttl`` seconds old; failed entries are never
    served, so the next lookup retries.

    All mutation happens on the event loop thread, so no locking is used.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        if ttl < 0:
            raise ValueError("ttl must be >= 0")
        self.dispatcher = dispatcher
        self.ttl = ttl
        self.clock = clock
        self.audit = audit
        self._entries: Dict[Query, CacheEntry] = {}
        self._tasks: Set["asyncio.Task[None]"] = set()
        self.stats = {
            "hits": 0,
            "misses": 0,
            "joins": 0,
            "fetches": 0,
            "failures": 0,
            "evictions": 0,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: Query) -> bool:
        return query in self._entries

    def peek(self, query: Query) -> Optional[CacheEntry]:
        return self._entries.get(query)

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return entry.state is EntryState.READY and entry.age(now) >= self.ttl

    async def lookup_or_fetch(self, query: Query) -> Any:
        now = self.clock()
        entry = self._entries.get(query)
        if entry is not None and self._expired(entry, now):
            self._evict(query, "expired")
            entry = None

        if entry is not None and entry.state is EntryState.READY:
            self.stats["hits"] += 1
            self._log("cache_hit", query)
            return copy.deepcopy(entry.value)

        if entry is not None and entry.state is EntryState.PENDING:
            self.stats["joins"] += 1
            self._log("cache_join", query, subscribers=entry.subscribers + 1)
        else:
            self.stats["misses"] += 1
            entry = self._start(query, now)

        entry.subscribers += 1
        try:
            # shield: a cancelled caller must not cancel the shared fetch
            return copy.deepcopy(await asyncio.shield(entry.future))
        finally:
            entry.subscribers -= 1

    def _start(self, query: Query, now: float) -> CacheEntry:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        future.add_done_callback(_consume_outcome)
        entry = CacheEntry(query=query, created_at=now, future=future)
        self._entries[query] = entry
        self.stats["fetches"] += 1
        self._log("cache_fetch", query)
        entry.task = loop.create_task(self._run(entry))
        self._tasks.add(entry.task)
        entry.task.add_done_callback(self._tasks.discard)
        return entry

    async def _run(self, entry: CacheEntry) -> None:
        try:
            value = await self.dispatcher.fetch(entry.query)
        except asyncio.CancelledError:
            entry.state = EntryState.FAILED
            entry.future.cancel()
            raise
        except Exception as exc:
            entry.state = EntryState.FAILED
            entry.error = exc
            self.stats["failures"] += 1
            self._log("cache_failed", entry.query, error=repr(exc))
            entry.future.set_exception(exc)
        else:
            entry.state = EntryState.READY
            entry.value = value
            entry.future.set_result(value)

    def invalidate(self, query: Query) -> bool:
        """Drop the entry for ``query`` whatever its state.

        An in-flight fetch still settles for the callers already waiting on
        it, but its result is not stored.
        """
        if query not in self._entries:
            return False
        self._evict(query, "invalidated")
        return True

    def clear(self) -> None:
        for query in list(self._entries):
            self._evict(query, "cleared")

    def sweep(self) -> int:
        now = self.clock()
        stale = [
            q
            for q, e in self._entries.items()
            if self._expired(e, now) or e.state is EntryState.FAILED
        ]
        for query in stale:
            self._evict(query, "swept")
        return len(stale)

    async def run_sweeper(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    def _evict(self, query: Query, reason: str) -> None:
        self._entries.pop(query, None)
        self.stats["evictions"] += 1
        self._log("cache_evict", query, reason=reason)

    def _log(self, event_type: str, query: Query, **context: Any) -> None:
        if self.audit is not None:
            self.audit.log(event_type, query.endpoint, {"params": dict(query.params), **context})
