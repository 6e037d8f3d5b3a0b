"""Tests for the store cache and the message bus."""

import logging
import typing

from shelfsync.core.bus import EventBus, FollowChanged, ShelfChanged
from shelfsync.stores.base import EntityCache


class TestEntityCache:
    def test_put_get_remove(self):
        cache: EntityCache[int, str] = EntityCache("books")
        cache.put(1, "Piranesi")

        assert cache.get(1) == "Piranesi"
        assert 1 in cache
        assert len(cache) == 1
        assert cache.remove(1) == "Piranesi"
        assert cache.get(1) is None
        assert cache.remove(1) is None

    def test_put_upserts(self):
        cache: EntityCache[int, str] = EntityCache()
        cache.put(1, "draft")
        cache.put(1, "final")

        assert cache.values() == ["final"]

    def test_list_with_predicate(self):
        cache: EntityCache[int, int] = EntityCache()
        cache.put_many({1: 10, 2: 20, 3: 30})

        assert cache.list(lambda v: v > 15) == [20, 30]
        assert cache.list() == [10, 20, 30]
        assert cache.keys() == [1, 2, 3]

    def test_list_method_does_not_shadow_builtin_in_annotations(self):
        hints = typing.get_type_hints(EntityCache.values)

        assert typing.get_origin(hints["return"]) is list
        assert typing.get_origin(typing.get_type_hints(EntityCache.keys)["return"]) is list

    def test_listeners_notified_on_every_write(self):
        cache: EntityCache[int, str] = EntityCache()
        calls = []
        unsubscribe = cache.subscribe(lambda: calls.append(len(cache)))

        cache.put(1, "a")
        cache.put_many({2: "b", 3: "c"})
        cache.remove(1)
        cache.clear()
        assert calls == [1, 3, 2, 0]

        unsubscribe()
        cache.put(4, "d")
        assert calls == [1, 3, 2, 0]

    def test_empty_put_many_does_not_notify(self):
        cache: EntityCache[int, str] = EntityCache()
        calls = []
        cache.subscribe(lambda: calls.append(True))

        cache.put_many({})

        assert calls == []

    def test_failing_listener_does_not_block_others(self, caplog):
        cache: EntityCache[int, str] = EntityCache("follows")
        calls = []

        def broken():
            raise RuntimeError("listener bug")

        cache.subscribe(broken)
        cache.subscribe(lambda: calls.append(True))

        with caplog.at_level(logging.WARNING):
            cache.put(1, "a")

        assert calls == [True]
        assert "Listener failed for follows" in caplog.text


class TestEventBus:
    def test_sync_handler_receives_message(self):
        bus = EventBus()
        received = []
        bus.subscribe(ShelfChanged, received.append)

        bus.publish(ShelfChanged(book_id=1, user_book_id=2, reason="added"))
        bus.publish(FollowChanged("Author", 3, True))

        assert received == [ShelfChanged(1, 2, "added")]

    def test_handler_failure_never_reaches_publisher(self):
        bus = EventBus()
        received = []

        def broken(message):
            raise RuntimeError("boom")

        bus.subscribe(FollowChanged, broken)
        bus.subscribe(FollowChanged, received.append)

        bus.publish(FollowChanged("Author", 3, True))

        assert len(received) == 1

    async def test_coroutine_handlers_run_in_background(self):
        bus = EventBus()
        received = []

        async def handler(message):
            received.append(message)

        async def broken(message):
            raise RuntimeError("boom")

        bus.subscribe(ShelfChanged, handler)
        bus.subscribe(ShelfChanged, broken)

        bus.publish(ShelfChanged(1, 2, "updated"))
        assert bus.pending == 2
        assert received == []

        await bus.drain()

        assert bus.pending == 0
        assert received == [ShelfChanged(1, 2, "updated")]

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(ShelfChanged, received.append)

        unsubscribe()
        bus.publish(ShelfChanged(1, 2, "added"))

        assert received == []
