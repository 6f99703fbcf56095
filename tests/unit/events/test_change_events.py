"""Tests for change event schemas and the in-memory bus."""

import asyncio

import pytest

from reelindex.events.bus import InMemoryEventBus, dispatch
from reelindex.events.schemas import ChangeEvent, ChangeKind


class TestChangeKind:
    def test_topics(self) -> None:
        """Each kind maps to a content.* topic."""
        assert ChangeKind.CREATED.topic == "content.created"
        assert ChangeKind.REINDEX_REQUESTED.topic == "content.reindex_requested"

    def test_from_topic(self) -> None:
        assert ChangeKind.from_topic("content.deleted") == ChangeKind.DELETED

    def test_from_foreign_topic(self) -> None:
        """Topics outside the content namespace are rejected."""
        with pytest.raises(ValueError):
            ChangeKind.from_topic("program.created")


class TestChangeEvent:
    def test_from_dict_falls_back_to_topic(self) -> None:
        """Messages carrying only a topic are still understood."""
        event = ChangeEvent.from_dict({"topic": "content.updated", "entity_id": "abc"})

        assert event.change_kind == ChangeKind.UPDATED
        assert event.entity_id == "abc"
        assert event.payload == {}

    def test_wire_form(self) -> None:
        """The wire form carries kind, topic and entity id."""
        event = ChangeEvent(ChangeKind.DELETED, entity_id="abc", payload={"id": "abc"})

        data = event.to_dict()

        assert data["topic"] == "content.deleted"
        assert data["change_kind"] == "deleted"
        assert ChangeEvent.from_dict(data) == event


class TestDispatch:
    async def test_first_failure_propagates(self) -> None:
        """A raising handler fails the whole delivery."""
        calls: list[str] = []

        async def ok(event: ChangeEvent) -> None:
            calls.append("ok")

        async def broken(event: ChangeEvent) -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await dispatch([ok, broken], ChangeEvent(ChangeKind.CREATED, entity_id="a"))

        assert calls == ["ok"]


class TestInMemoryEventBus:
    """Tests for InMemoryEventBus delivery semantics."""

    async def test_delivers_to_subscribers(self) -> None:
        """Published events reach every handler."""
        bus = InMemoryEventBus()
        received: list[ChangeEvent] = []

        async def handler(event: ChangeEvent) -> None:
            received.append(event)

        await bus.subscribe(handler)
        event = ChangeEvent(ChangeKind.CREATED, entity_id="abc")
        await bus.publish(event)

        assert await bus.process_pending() == 1
        assert received == [event]

    async def test_failed_event_is_redelivered(self) -> None:
        """An event whose handler raised is delivered again."""
        bus = InMemoryEventBus(max_deliveries=5)
        attempts: list[int] = []

        async def flaky(event: ChangeEvent) -> None:
            attempts.append(1)
            if len(attempts) < 3:
                raise RuntimeError("cache down")

        await bus.subscribe(flaky)
        await bus.publish(ChangeEvent(ChangeKind.UPDATED, entity_id="abc"))

        await bus.process_pending()

        assert len(attempts) == 3
        assert bus.dead_letters == []

    async def test_dead_lettered_after_max_deliveries(self) -> None:
        """Events failing every delivery are parked, not dropped."""
        bus = InMemoryEventBus(max_deliveries=2)

        async def broken(event: ChangeEvent) -> None:
            raise RuntimeError("boom")

        await bus.subscribe(broken)
        event = ChangeEvent(ChangeKind.UPDATED, entity_id="abc")
        await bus.publish(event)

        await bus.process_pending()

        assert bus.dead_letters == [event]
        assert bus.pending_count == 0

    async def test_background_loop_drains(self) -> None:
        """start() processes events in the background."""
        bus = InMemoryEventBus()
        received: list[ChangeEvent] = []

        async def handler(event: ChangeEvent) -> None:
            received.append(event)

        await bus.subscribe(handler)
        await bus.start()
        try:
            await bus.publish(ChangeEvent(ChangeKind.CREATED, entity_id="abc"))
            await bus.drain()
        finally:
            await bus.stop()

        assert len(received) == 1

    async def test_full_queue_dead_letters_redelivery(self) -> None:
        """A retry that finds the queue full is parked instead of blocking the loop."""
        bus = InMemoryEventBus(max_size=1, max_deliveries=5)
        first = ChangeEvent(ChangeKind.UPDATED, entity_id="abc")
        second = ChangeEvent(ChangeKind.UPDATED, entity_id="def")
        handled: list[str | None] = []

        async def handler(event: ChangeEvent) -> None:
            handled.append(event.entity_id)
            if event is first:
                await bus.publish(second)
                raise RuntimeError("cache down")

        await bus.subscribe(handler)
        await bus.start()
        try:
            await bus.publish(first)
            await asyncio.wait_for(bus.drain(), timeout=5)
        finally:
            await bus.stop()

        assert bus.dead_letters == [first]
        assert handled == ["abc", "def"]
