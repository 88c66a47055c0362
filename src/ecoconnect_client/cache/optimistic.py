from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Iterable, Optional, Union

from ecoconnect_client.cache.keys import QueryKey
from ecoconnect_client.cache.query_cache import QueryCache
from ecoconnect_client.errors import GENERIC_ERROR_MESSAGE, is_rate_limited
from ecoconnect_client.errors import error_message as body_error_message
from ecoconnect_client.notifications import Notifier

logger = logging.getLogger(__name__)

Message = Union[str, Callable[..., Optional[str]], None]


class OptimisticMutation:
    """
    Server write applied to the cache before the server confirms it.

    Calling the mutation cancels in-flight reads of `key`, snapshots the cached
    value, writes `predict(old, *args)` and only then sends the request. On
    failure the snapshot is restored exactly and the error re-raised; either
    way `key` and every key in `invalidate` are marked stale afterwards.
    """

    def __init__(
        self,
        cache: QueryCache,
        key: QueryKey,
        mutate: Callable[..., Any],
        predict: Optional[Callable[..., Any]] = None,
        commit: Optional[Callable[..., Any]] = None,
        rollback: Optional[Callable[..., None]] = None,
        success_message: Message = None,
        error_message: Message = None,
        invalidate: Iterable[QueryKey] = (),
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.cache = cache
        self.key = tuple(key)
        self.mutate = mutate
        self.predict = predict
        self.commit = commit
        self.rollback = rollback
        self.success_message = success_message
        self.error_message = error_message
        self.invalidate = [tuple(related) for related in invalidate]
        self.notifier = notifier

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        self.cache.cancel(self.key)
        previous = self.cache.get_entry(self.key)
        had_data = previous.status not in ("empty", "loading")
        snapshot = copy.deepcopy(previous.data)

        if self.predict is not None:
            predicted = self.predict(copy.deepcopy(previous.data), *args, **kwargs)
            # nothing cached and nothing predicted: leave the key empty
            if had_data or predicted is not None:
                self.cache.set(self.key, predicted)

        try:
            try:
                result = self.mutate(*args, **kwargs)
            except Exception as exc:
                self._restore(had_data, snapshot)
                if self.rollback is not None:
                    self.rollback(exc, *args, **kwargs)
                self._notify_error(exc, *args, **kwargs)
                raise

            if self.commit is not None:
                committed = self.commit(self.cache.get(self.key), result, *args, **kwargs)
                if committed is not None:
                    self.cache.set(self.key, committed)
            message = self._render(self.success_message, result, *args, **kwargs)
            if message and self.notifier is not None:
                self.notifier.success(message)
            return result
        finally:
            self.cache.invalidate(self.key)
            for related in self.invalidate:
                self.cache.invalidate(related)

    def _restore(self, had_data: bool, snapshot: Any) -> None:
        if had_data:
            self.cache.set(self.key, snapshot)
        else:
            self.cache.remove(self.key, exact=True)
        logger.debug("Rolled back optimistic update of %s", self.key)

    @staticmethod
    def _render(message: Message, *args: Any, **kwargs: Any) -> Optional[str]:
        if callable(message):
            return message(*args, **kwargs)
        return message

    def _notify_error(self, error: Exception, *args: Any, **kwargs: Any) -> None:
        logger.error("Mutation on %s failed: %s", self.key, error)
        # 429 is surfaced as a countdown by the caller, not as a toast
        if self.notifier is None or is_rate_limited(error):
            return
        if callable(self.error_message):
            message = self.error_message(error, *args, **kwargs)
        elif self.error_message:
            message = self.error_message
        else:
            message = body_error_message(error, GENERIC_ERROR_MESSAGE)
        if message:
            self.notifier.error(message)
