"""
Process-wide query cache.

Entries are keyed by tuples (see `cache.keys`) and move through
empty -> loading -> success <-> stale -> success | error. A failed refetch keeps
the previous data next to the error. Concurrent fetches of one key share a
single in-flight `Future`; `cancel` bumps an entry's generation so a result that
arrives afterwards is handed to its waiters but never written into the cache.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from ecoconnect_client.cache.keys import QueryKey, matches
from ecoconnect_client.errors import is_auth_error, is_not_found

logger = logging.getLogger(__name__)

RetryPolicy = Callable[[int, BaseException], bool]

MAX_RETRY_DELAY = 30.0


def default_retry(max_retries: int = 2) -> RetryPolicy:
    """Retry up to `max_retries` times; authentication failures never retry."""

    def should_retry(failure_count: int, error: BaseException) -> bool:
        if is_auth_error(error):
            return False
        return failure_count <= max_retries

    return should_retry


def no_retry_on_not_found(max_retries: int = 2) -> RetryPolicy:
    base = default_retry(max_retries)

    def should_retry(failure_count: int, error: BaseException) -> bool:
        if is_not_found(error):
            return False
        return base(failure_count, error)

    return should_retry


def exponential_delay(attempt: int) -> float:
    return min(1.0 * 2**attempt, MAX_RETRY_DELAY)


@dataclass
class QueryOptions:
    stale_time: Optional[float] = None
    retry: Union[int, RetryPolicy, None] = None
    retry_delay: Optional[Callable[[int], float]] = None
    enabled: bool = True
    select: Optional[Callable[[Any], Any]] = None


@dataclass
class QueryResult:
    data: Any
    error: Optional[BaseException]
    status: str
    is_stale: bool
    fetched_at: Optional[float]

    @property
    def is_loading(self) -> bool:
        return self.status == "loading"

    @property
    def is_error(self) -> bool:
        return self.status == "error"

    @property
    def is_success(self) -> bool:
        return self.status in ("success", "stale")


class _Entry:
    __slots__ = (
        "data",
        "has_data",
        "error",
        "status",
        "fetched_at",
        "invalidated",
        "generation",
        "in_flight",
        "stale_time",
    )

    def __init__(self, stale_time: float) -> None:
        self.data: Any = None
        self.has_data = False
        self.error: Optional[BaseException] = None
        self.status = "empty"
        self.fetched_at: Optional[float] = None
        self.invalidated = False
        self.generation = 0
        self.in_flight: Optional[Future] = None
        self.stale_time = stale_time


class QueryCache:
    def __init__(
        self,
        max_entries: int = 500,
        default_stale_time: float = 300.0,
        default_retry: int = 2,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        executor: Optional[Executor] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.max_entries = max_entries
        self.default_stale_time = default_stale_time
        self.default_retry = default_retry
        self.clock = clock
        self.sleep = sleep
        self.executor = executor
        self.on_error = on_error
        self._entries: "OrderedDict[QueryKey, _Entry]" = OrderedDict()
        self._lock = threading.RLock()

    # Reads

    def _is_stale(self, entry: _Entry) -> bool:
        if not entry.has_data or entry.fetched_at is None:
            return True
        if entry.invalidated:
            return True
        return self.clock() - entry.fetched_at >= entry.stale_time

    def _snapshot(self, entry: Optional[_Entry]) -> QueryResult:
        if entry is None:
            return QueryResult(None, None, "empty", True, None)
        stale = self._is_stale(entry)
        status = entry.status
        if status == "success" and stale:
            status = "stale"
        return QueryResult(entry.data, entry.error, status, stale, entry.fetched_at)

    def _touch(self, key: QueryKey) -> Optional[_Entry]:
        """Look up an entry and mark it as recently used."""
        key = tuple(key)
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
        return entry

    def get(self, key: QueryKey) -> Any:
        with self._lock:
            entry = self._touch(key)
            return entry.data if entry is not None else None

    def get_entry(self, key: QueryKey) -> QueryResult:
        with self._lock:
            return self._snapshot(self._touch(key))

    def is_fetching(self, key: QueryKey) -> bool:
        with self._lock:
            entry = self._entries.get(tuple(key))
            return entry is not None and entry.in_flight is not None

    def keys(self) -> list[QueryKey]:
        with self._lock:
            return list(self._entries)

    # Writes

    def _entry(self, key: QueryKey, stale_time: Optional[float] = None) -> _Entry:
        key = tuple(key)
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry(
                self.default_stale_time if stale_time is None else stale_time
            )
            self._entries[key] = entry
            self._evict()
        else:
            self._entries.move_to_end(key)
            if stale_time is not None:
                entry.stale_time = stale_time
        return entry

    def _evict(self) -> None:
        if len(self._entries) <= self.max_entries:
            return
        # the newest entry is the one being inserted
        for key in list(self._entries)[:-1]:
            if len(self._entries) <= self.max_entries:
                break
            if self._entries[key].in_flight is None:
                del self._entries[key]
                logger.debug("Evicted cache entry %s", key)

    def set(self, key: QueryKey, value: Any) -> Any:
        """Write data directly; a callable receives the current data and returns the new one."""
        with self._lock:
            entry = self._entry(key)
            data = value(entry.data) if callable(value) else value
            entry.data = data
            entry.has_data = True
            entry.error = None
            entry.status = "success"
            entry.fetched_at = self.clock()
            entry.invalidated = False
            return data

    def _matching(self, prefix: QueryKey) -> list[_Entry]:
        prefix = tuple(prefix)
        return [entry for key, entry in self._entries.items() if matches(key, prefix)]

    def invalidate(self, prefix: QueryKey) -> int:
        with self._lock:
            entries = self._matching(prefix)
            for entry in entries:
                entry.invalidated = True
        if entries:
            logger.debug("Invalidated %s entries under %s", len(entries), tuple(prefix))
        return len(entries)

    def _cancel_entry(self, entry: _Entry) -> None:
        if entry.in_flight is None:
            return
        entry.generation += 1
        entry.in_flight = None
        if entry.status == "loading":
            entry.status = "empty"

    def cancel(self, prefix: QueryKey) -> int:
        with self._lock:
            entries = [entry for entry in self._matching(prefix) if entry.in_flight]
            for entry in entries:
                self._cancel_entry(entry)
        return len(entries)

    def remove(self, prefix: QueryKey, exact: bool = False) -> int:
        prefix = tuple(prefix)
        with self._lock:
            doomed = [
                key
                for key in self._entries
                if (key == prefix if exact else matches(key, prefix))
            ]
            for key in doomed:
                self._cancel_entry(self._entries[key])
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            for entry in self._entries.values():
                self._cancel_entry(entry)
            self._entries.clear()
        logger.debug("Query cache cleared")

    # Fetching

    def _retry_policy(self, options: QueryOptions) -> RetryPolicy:
        if callable(options.retry):
            return options.retry
        if options.retry is None:
            return default_retry(self.default_retry)
        return default_retry(options.retry)

    def _run_fetcher(self, key: QueryKey, fetcher: Callable[[], Any], options: QueryOptions) -> Any:
        should_retry = self._retry_policy(options)
        delay = options.retry_delay or exponential_delay
        failure_count = 0
        while True:
            try:
                return fetcher()
            except Exception as exc:
                failure_count += 1
                if not should_retry(failure_count, exc):
                    raise
                wait = delay(failure_count - 1)
                logger.debug(
                    "Query %s failed (%s), retry %s in %.1fs",
                    key,
                    exc,
                    failure_count,
                    wait,
                )
                self.sleep(wait)

    def _start(self, key: QueryKey, options: QueryOptions) -> tuple[Future, int, bool]:
        """Join the running fetch for `key` or register a new one."""
        with self._lock:
            entry = self._entry(key, options.stale_time)
            if entry.in_flight is not None:
                return entry.in_flight, entry.generation, False
            future: Future = Future()
            entry.in_flight = future
            if not entry.has_data:
                entry.status = "loading"
            return future, entry.generation, True

    def _execute(
        self,
        key: QueryKey,
        fetcher: Callable[[], Any],
        options: QueryOptions,
        future: Future,
        generation: int,
    ) -> None:
        key = tuple(key)
        try:
            data = self._run_fetcher(key, fetcher, options)
        except Exception as exc:
            with self._lock:
                entry = self._entries.get(key)
                current = entry is not None and entry.generation == generation
                if current:
                    entry.error = exc
                    entry.status = "error"
                if entry is not None and entry.in_flight is future:
                    entry.in_flight = None
            logger.error("Query %s failed: %s", key, exc)
            if current and self.on_error is not None:
                self.on_error(exc)
            future.set_exception(exc)
            return

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.generation == generation:
                entry.data = data
                entry.has_data = True
                entry.error = None
                entry.status = "success"
                entry.fetched_at = self.clock()
                entry.invalidated = False
            else:
                logger.debug("Discarded cancelled result for %s", key)
            if entry is not None and entry.in_flight is future:
                entry.in_flight = None
        future.set_result(data)

    def _refetch(self, key: QueryKey, fetcher: Callable[[], Any], options: QueryOptions) -> Future:
        future, generation, owner = self._start(key, options)
        if owner:
            self._execute(key, fetcher, options, future, generation)
        return future

    def fetch(
        self,
        key: QueryKey,
        fetcher: Callable[[], Any],
        options: Optional[QueryOptions] = None,
    ) -> Any:
        """Cached data if fresh, otherwise fetch (deduplicated). Raises on failure."""
        options = options or QueryOptions()
        key = tuple(key)

        with self._lock:
            entry = self._entry(key, options.stale_time)
            fresh = entry.has_data and not self._is_stale(entry)
            stale_data = entry.has_data and not fresh
            data = entry.data

        if fresh:
            return self._select(data, options)

        if stale_data and self.executor is not None:
            future, generation, owner = self._start(key, options)
            if owner:
                self.executor.submit(
                    self._execute, key, fetcher, options, future, generation
                )
            return self._select(data, options)

        future = self._refetch(key, fetcher, options)
        return self._select(future.result(), options)

    def query(
        self,
        key: QueryKey,
        fetcher: Callable[[], Any],
        options: Optional[QueryOptions] = None,
    ) -> QueryResult:
        """Like `fetch` but reports failures on the result instead of raising."""
        options = options or QueryOptions()
        if not options.enabled:
            result = self.get_entry(key)
            result.data = self._select(result.data, options)
            return result

        try:
            data = self.fetch(key, fetcher, options)
        except Exception as exc:
            result = self.get_entry(key)
            result.data = self._select(result.data, options)
            if result.error is None:
                # the entry was cancelled while this fetch ran
                result.error = exc
                result.status = "error"
            return result

        result = self.get_entry(key)
        result.data = data
        return result

    @staticmethod
    def _select(data: Any, options: QueryOptions) -> Any:
        if options.select is None or data is None:
            return data
        return options.select(data)
