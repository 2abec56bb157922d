"""Reactive in-memory key-value store.

Every mutation is published through the store's own :class:`PubSub`
router.  Mutating and publishing operations are coroutines serialized by a
per-store :class:`asyncio.Lock`; read-only operations are synchronous and
never suspend.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any

from woolstore._constants import (
    DELETE_KEY_NOT_EXISTS,
    PUB_KEY_NOT_EXISTS,
    SUB_KEY_NOT_EXISTS,
    UNSUB_KEY_NOT_EXISTS,
)
from woolstore._redact import describe_value
from woolstore.config import StoreConfig
from woolstore.events import Callback, PubSubType
from woolstore.exceptions import NotificationError, StoreError
from woolstore.pubsub import ErrorHook, PubSub

_logger = logging.getLogger(__name__)

Predicate = Callable[[str, Any], bool]
Selector = Predicate | re.Pattern[str] | str | None

_MISSING = object()


def _identity(value: Any) -> Any:
    return value


def _match_all(key: str, value: Any) -> bool:
    return True


def _as_predicate(selector: Selector) -> Predicate:
    if selector is None:
        return _match_all
    if isinstance(selector, str):
        selector = re.compile(selector)
    if isinstance(selector, re.Pattern):
        pattern = selector
        return lambda key, _value: pattern.search(key) is not None
    if callable(selector):
        return selector
    raise TypeError(f"selector must be a regex or a predicate, got {type(selector).__name__}")


class Store:
    """In-memory key-value store with a Pub/Sub mechanism.

    Usage::

        store = Store.build()
        await store.set("counter", 1)
        await store.sub("ui", "counter", on_change, deliver_now=True)
        await store.set("counter", 2)

    Callbacks are called as ``callback(key, value, trigger)`` and may be
    plain functions or coroutine functions.  Global subscribers are notified
    before the subscribers of the key, each group in registration order.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        on_callback_error: ErrorHook | None = None,
    ) -> None:
        self._config = config or StoreConfig()
        self._db: dict[str, Any] = {}
        self._pubsub = PubSub(
            concurrent=self._config.concurrent_fanout,
            on_error=on_callback_error,
            log_values=self._config.log_values,
            log_max_string=self._config.log_max_string,
        )
        self._lock = asyncio.Lock()
        self._holder: asyncio.Task[Any] | None = None

    @classmethod
    def build(cls, config: StoreConfig | None = None, **kwargs: Any) -> Store:
        """Build a new store; *config* defaults to :meth:`StoreConfig.from_env`."""
        return cls(config if config is not None else StoreConfig.from_env(), **kwargs)

    @property
    def config(self) -> StoreConfig:
        return self._config

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        task = asyncio.current_task()
        if task is not None and (task is self._holder or self._pubsub.is_delivering(task)):
            # Called from a callback of the operation holding the lock.
            yield
            return
        async with self._lock:
            self._holder = task
            try:
                yield
            finally:
                self._holder = None

    def _raise_for_errors(self, key: str, errors: list[BaseException]) -> None:
        if errors and self._config.raise_callback_errors:
            raise NotificationError(key, errors)

    def _describe(self, value: Any) -> Any:
        return describe_value(
            value,
            include_value=self._config.log_values,
            max_string=self._config.log_max_string,
        )

    # ------------------------------------------------------------------
    # Key-value operations
    # ------------------------------------------------------------------

    def has(self, key: str) -> bool:
        return key in self._db

    def get(self, key: str, default: Any = None) -> Any:
        """Current value of *key*, or *default* when the key is absent."""
        return self._db.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        """Create or overwrite *key* and publish with ``PubSubType.SET``.

        Subscribers are notified even when the value did not change.
        """
        async with self._exclusive():
            created = key not in self._db
            self._db[key] = value
            if _logger.isEnabledFor(logging.DEBUG):
                _logger.debug(
                    "%s key=%s value=%s",
                    "Created" if created else "Updated",
                    key,
                    self._describe(value),
                )
            errors = await self._pubsub.pub(key, value, PubSubType.SET)
        self._raise_for_errors(key, errors)

    async def delete(self, key: str) -> None:
        """Delete *key*.

        Subscribers receive ``PubSubType.DEL`` with the value held before
        deletion.  The scoped subscriptions the key had are dropped afterwards,
        even when the fan-out is cancelled.  Subscriptions a callback makes to
        an entry re-created under the same key during the fan-out are kept.

        Raises
        ------
        StoreError
            If *key* does not exist.
        """
        async with self._exclusive():
            if key not in self._db:
                raise StoreError(DELETE_KEY_NOT_EXISTS, key)
            value = self._db.pop(key)
            sources = self._pubsub.sources(key)
            try:
                errors = await self._pubsub.pub(key, value, PubSubType.DEL)
            finally:
                dropped = self._pubsub.drop_key(key, sources)
                _logger.debug("Deleted key=%s dropped_subscribers=%s", key, dropped)
        self._raise_for_errors(key, errors)

    def find(self, selector: Selector = None, mapper: Callable[[Any], Any] = _identity) -> Iterator[tuple[str, Any]]:
        """Iterate over ``(key, mapped_value)`` pairs matching *selector*.

        The entries are captured when ``find`` is called; the returned
        iterator is lazy and single-pass, and yields in insertion order.

        *selector* is either ``None`` (every entry), a regular expression
        (compiled or as a string) searched in the key, or a predicate called
        as ``predicate(key, mapped_value)``.  *mapper* is applied to each
        value before the predicate sees it.
        """
        predicate = _as_predicate(selector)
        entries = list(self._db.items())
        return self._iter_matches(entries, predicate, mapper)

    @staticmethod
    def _iter_matches(
        entries: list[tuple[str, Any]],
        predicate: Predicate,
        mapper: Callable[[Any], Any],
    ) -> Iterator[tuple[str, Any]]:
        for key, value in entries:
            mapped = mapper(value)
            if predicate(key, mapped):
                yield key, mapped

    def find_one(self, selector: Selector = None, default: Any = None) -> Any:
        """Value of the first entry matching *selector*, or *default*."""
        found = next(self.find(selector), _MISSING)
        if found is _MISSING:
            return default
        _key, value = found
        return value

    def keys(self) -> list[str]:
        return list(self._db)

    def __len__(self) -> int:
        return len(self._db)

    def __contains__(self, key: object) -> bool:
        return key in self._db

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._db))

    # ------------------------------------------------------------------
    # Pub/Sub
    # ------------------------------------------------------------------

    async def pub(self, key: str) -> None:
        """Re-publish the current value of *key* with ``PubSubType.PUB``.

        Raises
        ------
        StoreError
            If *key* does not exist.
        """
        async with self._exclusive():
            if key not in self._db:
                raise StoreError(PUB_KEY_NOT_EXISTS, key)
            errors = await self._pubsub.pub(key, self._db[key], PubSubType.PUB)
        self._raise_for_errors(key, errors)

    def has_sub(self, source: str, key: str) -> bool:
        return self._pubsub.has(source, key)

    async def sub(self, source: str, key: str, callback: Callback, deliver_now: bool = False) -> None:
        """Subscribe *source* to changes of *key*.

        A second subscription for the same (source, key) replaces the
        callback.  With *deliver_now*, only this callback immediately
        receives the current value with ``PubSubType.SUB``.

        Raises
        ------
        StoreError
            If *key* does not exist.
        """
        async with self._exclusive():
            if key not in self._db:
                raise StoreError(SUB_KEY_NOT_EXISTS, key)
            self._pubsub.sub(source, key, callback)
            errors: list[BaseException] = []
            if deliver_now:
                errors = await self._pubsub.pub_to(source, key, self._db[key], PubSubType.SUB)
        self._raise_for_errors(key, errors)

    async def unsub(self, source: str, key: str) -> None:
        """Unsubscribe *source* from *key*; a missing subscription is ignored.

        Raises
        ------
        StoreError
            If *key* does not exist.
        """
        async with self._exclusive():
            if key not in self._db:
                raise StoreError(UNSUB_KEY_NOT_EXISTS, key)
            self._pubsub.unsub(source, key)

    def has_sub_global(self, source: str) -> bool:
        return self._pubsub.has_global(source)

    async def sub_global(self, source: str, callback: Callback) -> None:
        """Subscribe *source* to changes of every key."""
        async with self._exclusive():
            self._pubsub.sub_global(source, callback)

    async def unsub_global(self, source: str) -> None:
        async with self._exclusive():
            self._pubsub.unsub_global(source)

    async def unsub_everywhere(self, source: str) -> None:
        """Remove every subscription of *source*, global and scoped."""
        async with self._exclusive():
            self._pubsub.unsub_everywhere(source)
