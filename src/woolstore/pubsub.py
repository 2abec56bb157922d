"""Subscription bookkeeping and notification fan-out.

The router owns every subscription of one store:

* ``_global``: source -> callback, notified for every key
* ``_key_source_cb``: key -> (source -> callback)
* ``_source_keys``: source -> keys it is scoped-subscribed to, so that
  :meth:`PubSub.unsub_everywhere` never scans every key

Plain dicts keep registration order, which is the delivery order within
each subscriber group.  Replacing the callback of an existing registration
keeps its original position.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from typing import Any

from woolstore._redact import describe_value
from woolstore.events import Callback, Notification, PubSubType

_logger = logging.getLogger(__name__)

ErrorHook = Callable[[Notification, str, BaseException], None]


class PubSub:
    """Pub/Sub router used by :class:`woolstore.store.Store`.

    Mutating methods are synchronous; the store is responsible for
    serializing them.  :meth:`pub` and :meth:`pub_to` return only once
    every addressed callback has completed, and return the exceptions
    raised by failing callbacks (an empty list on success).
    """

    def __init__(
        self,
        *,
        concurrent: bool = False,
        on_error: ErrorHook | None = None,
        log_values: bool = True,
        log_max_string: int = 256,
    ) -> None:
        self._concurrent = concurrent
        self._on_error = on_error
        self._log_values = log_values
        self._log_max_string = log_max_string
        self._global: dict[str, Callback] = {}
        self._key_source_cb: dict[str, dict[str, Callback]] = {}
        self._source_keys: dict[str, set[str]] = {}
        self._delivery_tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Global subscriptions
    # ------------------------------------------------------------------

    def has_global(self, source: str) -> bool:
        return source in self._global

    def sub_global(self, source: str, callback: Callback) -> None:
        self._global[source] = callback
        _logger.debug("Global subscription registered source=%s", source)

    def unsub_global(self, source: str) -> None:
        if self._global.pop(source, None) is not None:
            _logger.debug("Global subscription removed source=%s", source)

    # ------------------------------------------------------------------
    # Scoped subscriptions
    # ------------------------------------------------------------------

    def has(self, source: str, key: str) -> bool:
        """Whether *source* is subscribed to *key*.

        All three bookkeeping structures must agree.
        """
        source_cb = self._key_source_cb.get(key)
        keys = self._source_keys.get(source)
        return source_cb is not None and source in source_cb and keys is not None and key in keys

    def sub(self, source: str, key: str, callback: Callback) -> None:
        """Register *callback*, replacing any prior one for (source, key)."""
        self._key_source_cb.setdefault(key, {})[source] = callback
        self._source_keys.setdefault(source, set()).add(key)
        _logger.debug("Subscription registered source=%s key=%s", source, key)

    def unsub(self, source: str, key: str) -> None:
        """Remove the (source, key) registration; absence is a no-op."""
        source_cb = self._key_source_cb.get(key)
        if source_cb is not None:
            source_cb.pop(source, None)
            if not source_cb:
                del self._key_source_cb[key]
        keys = self._source_keys.get(source)
        if keys is not None:
            keys.discard(key)
            if not keys:
                del self._source_keys[source]
        _logger.debug("Subscription removed source=%s key=%s", source, key)

    def unsub_everywhere(self, source: str) -> None:
        """Drop the global registration of *source* and all of its scoped ones."""
        self.unsub_global(source)
        for key in list(self._source_keys.get(source, ())):
            self.unsub(source, key)

    def drop_key(self, key: str, sources: Iterable[str] | None = None) -> list[str]:
        """Remove the scoped registrations targeting *key*.

        With *sources*, only those subscribers are removed; otherwise every
        subscriber of *key* is.  Returns the removed sources in registration
        order.
        """
        source_cb = self._key_source_cb.get(key)
        if not source_cb:
            return []
        if sources is None:
            targets = list(source_cb)
        else:
            wanted = set(sources)
            targets = [source for source in source_cb if source in wanted]
        for source in targets:
            self.unsub(source, key)
        return targets

    def sources(self, key: str) -> list[str]:
        """Scoped subscribers of *key* in registration order."""
        return list(self._key_source_cb.get(key, ()))

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def pub(self, key: str, value: Any, trigger: PubSubType) -> list[BaseException]:
        """Deliver to all global subscribers, then to the scoped subscribers of *key*."""
        notification = Notification(key=key, value=value, trigger=trigger)
        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug(
                "Publishing key=%s trigger=%s value=%s",
                key,
                trigger,
                describe_value(value, include_value=self._log_values, max_string=self._log_max_string),
            )
        errors = await self._deliver(list(self._global.items()), notification)
        scoped = self._key_source_cb.get(key)
        if scoped:
            errors += await self._deliver(list(scoped.items()), notification)
        return errors

    async def pub_to(self, source: str, key: str, value: Any, trigger: PubSubType) -> list[BaseException]:
        """Deliver to the single scoped subscriber (source, key)."""
        callback = self._key_source_cb.get(key, {}).get(source)
        if callback is None:
            _logger.debug("No subscription to publish to source=%s key=%s", source, key)
            return []
        notification = Notification(key=key, value=value, trigger=trigger, source=source)
        return await self._deliver([(source, callback)], notification)

    def is_delivering(self, task: asyncio.Task[Any]) -> bool:
        """Whether *task* runs callbacks of a concurrent fan-out of this router."""
        return task in self._delivery_tasks

    async def _deliver(
        self,
        targets: Iterable[tuple[str, Callback]],
        notification: Notification,
    ) -> list[BaseException]:
        if self._concurrent:
            results = await asyncio.gather(
                *(self._invoke_tracked(source, callback, notification) for source, callback in targets)
            )
        else:
            results = [await self._invoke(source, callback, notification) for source, callback in targets]
        return [exc for exc in results if exc is not None]

    async def _invoke_tracked(self, source: str, callback: Callback, notification: Notification) -> BaseException | None:
        task = asyncio.current_task()
        if task is None:
            return await self._invoke(source, callback, notification)
        self._delivery_tasks.add(task)
        try:
            return await self._invoke(source, callback, notification)
        finally:
            self._delivery_tasks.discard(task)

    async def _invoke(self, source: str, callback: Callback, notification: Notification) -> BaseException | None:
        try:
            result = callback(*notification.as_args())
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            _logger.warning(
                "Subscriber callback failed source=%s key=%s trigger=%s",
                source,
                notification.key,
                notification.trigger,
                exc_info=True,
            )
            self._report(notification, source, exc)
            return exc
        return None

    def _report(self, notification: Notification, source: str, exc: BaseException) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(notification, source, exc)
        except Exception:
            _logger.debug("on_callback_error hook failed", exc_info=True)
