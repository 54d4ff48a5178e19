"""Tests for the in-process event bus."""
import pytest

from core.events import (
    BookmarkMutated,
    EventBus,
    MutationKind,
    OwnerChanged,
    RefreshRequested,
    VisibilityChanged,
)


class TestEventBus:
    """Tests for EventBus publish/subscribe."""

    async def test__publish__delivers_to_sync_and_async_handlers_in_order(self) -> None:
        """Plain and coroutine handlers both run, in subscription order."""
        bus = EventBus()
        calls: list[str] = []

        def sync_handler(event: VisibilityChanged) -> None:
            calls.append(f"sync:{event.visible}")

        async def async_handler(event: VisibilityChanged) -> None:
            calls.append(f"async:{event.visible}")

        bus.subscribe(VisibilityChanged, sync_handler)
        bus.subscribe(VisibilityChanged, async_handler)

        await bus.publish(VisibilityChanged(visible=True))

        assert calls == ["sync:True", "async:True"]

    async def test__publish__only_matching_event_type(self) -> None:
        """Handlers only receive the event type they subscribed to."""
        bus = EventBus()
        received: list[object] = []
        bus.subscribe(RefreshRequested, received.append)

        await bus.publish(OwnerChanged(owner_id="owner-1"))
        await bus.publish(RefreshRequested())

        assert received == [RefreshRequested()]

    async def test__unsubscribe__stops_delivery(self) -> None:
        """The callable returned by subscribe removes the handler."""
        bus = EventBus()
        received: list[object] = []
        unsubscribe = bus.subscribe(RefreshRequested, received.append)

        unsubscribe()
        unsubscribe()
        await bus.publish(RefreshRequested())

        assert received == []
        assert bus.handler_count(RefreshRequested) == 0

    async def test__publish__failing_handler_does_not_block_others(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A handler exception is logged and the remaining handlers still run."""
        bus = EventBus()
        received: list[object] = []

        def broken(_event: object) -> None:
            raise RuntimeError("boom")

        bus.subscribe(BookmarkMutated, broken)
        bus.subscribe(BookmarkMutated, received.append)
        event = BookmarkMutated(owner_id="owner-1", kind=MutationKind.INSERT, bookmark_id="b1")

        await bus.publish(event)

        assert received == [event]
        assert "event_handler_failed" in caplog.text
