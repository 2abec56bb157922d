from __future__ import annotations

import asyncio
from typing import Any

import pytest

from woolstore.events import PubSubType
from woolstore.pubsub import PubSub


def _noop(_key: str, _value: Any, _trigger: PubSubType) -> None:
    return None


class TestBookkeeping:
    def test_sub_registers_in_every_structure(self) -> None:
        pubsub = PubSub()
        pubsub.sub("src", "k", _noop)

        assert pubsub.has("src", "k")
        assert pubsub._key_source_cb["k"]["src"] is _noop  # noqa: SLF001
        assert pubsub._source_keys["src"] == {"k"}  # noqa: SLF001

    def test_has_requires_consistent_bookkeeping(self) -> None:
        pubsub = PubSub()
        pubsub.sub("src", "k", _noop)
        pubsub._source_keys["src"].discard("k")  # noqa: SLF001
        assert not pubsub.has("src", "k")

        pubsub = PubSub()
        pubsub.sub("src", "k", _noop)
        del pubsub._key_source_cb["k"]  # noqa: SLF001
        assert not pubsub.has("src", "k")

    def test_unsub_is_tolerant_and_cleans_up(self) -> None:
        pubsub = PubSub()
        pubsub.unsub("src", "k")

        pubsub.sub("src", "k", _noop)
        pubsub.unsub("src", "k")
        assert not pubsub.has("src", "k")
        assert pubsub._key_source_cb == {}  # noqa: SLF001
        assert pubsub._source_keys == {}  # noqa: SLF001

    def test_unsub_everywhere(self) -> None:
        pubsub = PubSub()
        pubsub.sub_global("src", _noop)
        pubsub.sub("src", "a", _noop)
        pubsub.sub("src", "b", _noop)
        pubsub.sub("other", "a", _noop)

        pubsub.unsub_everywhere("src")

        assert not pubsub.has_global("src")
        assert not pubsub.has("src", "a")
        assert not pubsub.has("src", "b")
        assert pubsub.has("other", "a")
        assert pubsub.sources("a") == ["other"]

    def test_drop_key(self) -> None:
        pubsub = PubSub()
        pubsub.sub("s1", "a", _noop)
        pubsub.sub("s2", "a", _noop)
        pubsub.sub("s2", "b", _noop)

        assert pubsub.drop_key("a") == ["s1", "s2"]
        assert pubsub.drop_key("a") == []
        assert not pubsub.has("s1", "a")
        assert not pubsub.has("s2", "a")
        assert pubsub.has("s2", "b")
        assert "s1" not in pubsub._source_keys  # noqa: SLF001

    def test_drop_key_limited_to_sources(self) -> None:
        pubsub = PubSub()
        pubsub.sub("s1", "a", _noop)
        pubsub.sub("s2", "a", _noop)
        pubsub.sub("s3", "a", _noop)

        assert pubsub.drop_key("a", ["s3", "s1", "unknown"]) == ["s1", "s3"]
        assert pubsub.sources("a") == ["s2"]
        assert pubsub.has("s2", "a")

    def test_replacement_keeps_registration_order(self) -> None:
        pubsub = PubSub()
        pubsub.sub("s1", "k", _noop)
        pubsub.sub("s2", "k", _noop)
        pubsub.sub("s1", "k", lambda *_args: None)
        assert pubsub.sources("k") == ["s1", "s2"]


class TestPublishing:
    @pytest.mark.asyncio
    async def test_pub_order_globals_first(self) -> None:
        pubsub = PubSub()
        order: list[str] = []
        pubsub.sub("scoped", "k", lambda *_args: order.append("scoped"))
        pubsub.sub_global("global", lambda *_args: order.append("global"))

        errors = await pubsub.pub("k", 1, PubSubType.SET)

        assert errors == []
        assert order == ["global", "scoped"]

    @pytest.mark.asyncio
    async def test_pub_to_targets_single_subscriber(self) -> None:
        pubsub = PubSub()
        received: dict[str, list[tuple[str, Any, PubSubType]]] = {"a": [], "b": []}
        pubsub.sub("a", "k", lambda *args: received["a"].append(args))
        pubsub.sub("b", "k", lambda *args: received["b"].append(args))

        await pubsub.pub_to("b", "k", 7, PubSubType.SUB)

        assert received == {"a": [], "b": [("k", 7, PubSubType.SUB)]}

    @pytest.mark.asyncio
    async def test_pub_to_without_subscription_is_noop(self) -> None:
        assert await PubSub().pub_to("nobody", "k", 1, PubSubType.SUB) == []

    @pytest.mark.asyncio
    async def test_failures_are_collected_and_reported(self) -> None:
        reported: list[str] = []
        pubsub = PubSub(on_error=lambda _n, source, _exc: reported.append(source))
        delivered: list[str] = []

        def broken(*_args: Any) -> None:
            raise RuntimeError("boom")

        pubsub.sub_global("g-broken", broken)
        pubsub.sub_global("g-ok", lambda *_args: delivered.append("g-ok"))
        pubsub.sub("s-broken", "k", broken)
        pubsub.sub("s-ok", "k", lambda *_args: delivered.append("s-ok"))

        errors = await pubsub.pub("k", None, PubSubType.DEL)

        assert delivered == ["g-ok", "s-ok"]
        assert reported == ["g-broken", "s-broken"]
        assert len(errors) == 2
        assert all(isinstance(exc, RuntimeError) for exc in errors)

    @pytest.mark.asyncio
    async def test_failing_error_hook_is_contained(self) -> None:
        def hook(*_args: Any) -> None:
            raise KeyError("hook")

        def broken(*_args: Any) -> None:
            raise RuntimeError("boom")

        pubsub = PubSub(on_error=hook)
        pubsub.sub_global("g", broken)
        errors = await pubsub.pub("k", 1, PubSubType.PUB)
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_concurrent_mode_awaits_coroutines(self) -> None:
        pubsub = PubSub(concurrent=True)
        received: list[str] = []

        async def cb(key: str, _value: Any, _trigger: PubSubType) -> None:
            received.append(key)

        pubsub.sub_global("g", cb)
        pubsub.sub("s", "k", cb)
        await pubsub.pub("k", 1, PubSubType.SET)
        assert received == ["k", "k"]

    @pytest.mark.asyncio
    async def test_concurrent_callbacks_run_in_tracked_tasks(self) -> None:
        pubsub = PubSub(concurrent=True)
        seen: list[bool] = []

        def cb(*_args: Any) -> None:
            task = asyncio.current_task()
            assert task is not None
            seen.append(pubsub.is_delivering(task))

        pubsub.sub_global("g", cb)
        pubsub.sub("s", "k", cb)
        await pubsub.pub("k", 1, PubSubType.SET)

        assert seen == [True, True]
        current = asyncio.current_task()
        assert current is not None
        assert not pubsub.is_delivering(current)
        assert pubsub._delivery_tasks == set()  # noqa: SLF001
