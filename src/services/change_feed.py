"""
Change feed subscriber.

Keeps exactly one live channel per owner and applies the row-level events it delivers
to the list view model. The channel is a latency optimization only: reconciliation
re-fetches remain the correctness backstop, so connection problems are logged and
retried but never surfaced to local operations.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from enum import StrEnum
from typing import Protocol

import httpx

from schemas.bookmark import ChangeEvent
from services.bookmark_list import BookmarkListModel
from services.exceptions import SubscriptionError

logger = logging.getLogger(__name__)


class FeedState(StrEnum):
    """Lifecycle of the subscription for one owner session."""

    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"


class ChangeChannel(Protocol):
    """A live subscription to bookmark row changes for one owner."""

    async def connect(self) -> None:
        """Open the channel. Raises SubscriptionError on failure."""
        ...

    def events(self) -> AsyncIterator[ChangeEvent]:
        """Yield events in arrival order; raises SubscriptionError when the channel drops."""
        ...

    async def close(self) -> None:
        """Release the channel. Safe to call more than once."""
        ...


ChannelFactory = Callable[[str], ChangeChannel]
StatusCallback = Callable[[FeedState], None]


class ChangeFeedSubscriber:
    """
    Subscription state machine: unsubscribed -> subscribing -> subscribed.

    `subscribe(owner_id)` is idempotent for the current owner. Subscribing a different
    owner tears the previous channel down first, so there is never more than one live
    channel per instance. Drops and connect failures return to `subscribing` and retry
    with capped exponential backoff.
    """

    def __init__(
        self,
        channel_factory: ChannelFactory,
        model: BookmarkListModel,
        *,
        retry_initial_seconds: float = 1.0,
        retry_max_seconds: float = 30.0,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._channel_factory = channel_factory
        self._model = model
        self._retry_initial = retry_initial_seconds
        self._retry_max = retry_max_seconds
        self._on_status = on_status
        self._state = FeedState.UNSUBSCRIBED
        self._owner_id: str | None = None
        self._task: asyncio.Task | None = None
        self._channel: ChangeChannel | None = None

    @property
    def state(self) -> FeedState:
        """Current subscription state."""
        return self._state

    @property
    def is_live(self) -> bool:
        """True while a channel is connected and delivering events."""
        return self._state is FeedState.SUBSCRIBED

    @property
    def owner_id(self) -> str | None:
        """Owner the active subscription is filtered to."""
        return self._owner_id

    async def subscribe(self, owner_id: str) -> None:
        """Start the subscription for an owner, replacing any stale owner's channel."""
        if self._owner_id == owner_id and self._task is not None and not self._task.done():
            return
        await self.unsubscribe()
        self._owner_id = owner_id
        self._set_state(FeedState.SUBSCRIBING)
        self._task = asyncio.create_task(self._run(owner_id), name=f"change-feed:{owner_id}")
        logger.info("change_feed_subscribe owner_id=%s", owner_id)

    async def unsubscribe(self) -> None:
        """Tear down the active channel, if any. Safe to call repeatedly."""
        task, self._task = self._task, None
        owner_id, self._owner_id = self._owner_id, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._close_channel()
        if owner_id is not None:
            logger.info("change_feed_unsubscribe owner_id=%s", owner_id)
        self._set_state(FeedState.UNSUBSCRIBED)

    async def _run(self, owner_id: str) -> None:
        """Connect, pump events, and reconnect until cancelled."""
        delay = self._retry_initial
        try:
            while True:
                self._set_state(FeedState.SUBSCRIBING)
                try:
                    channel = self._channel_factory(owner_id)
                    self._channel = channel
                    await channel.connect()
                    self._set_state(FeedState.SUBSCRIBED)
                    delay = self._retry_initial
                    async for event in channel.events():
                        self._apply(owner_id, event)
                    raise SubscriptionError("Change feed closed by server")
                except (SubscriptionError, httpx.HTTPError) as e:
                    logger.warning(
                        "change_feed_disconnected owner_id=%s retry_in=%.1fs error=%s",
                        owner_id,
                        delay,
                        e,
                    )
                except Exception:
                    logger.exception(
                        "change_feed_pump_failed owner_id=%s retry_in=%.1fs", owner_id, delay,
                    )
                finally:
                    await self._close_channel()
                self._set_state(FeedState.SUBSCRIBING)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._retry_max)
        finally:
            # Not live once the pump has stopped
            if self._task is None or self._task is asyncio.current_task():
                self._set_state(FeedState.UNSUBSCRIBED)

    def _apply(self, owner_id: str, event: ChangeEvent) -> None:
        """Apply one event unless it belongs to a stale or foreign owner."""
        if self._owner_id != owner_id or self._model.owner_id != owner_id:
            logger.debug("change_event_stale owner_id=%s kind=%s", owner_id, event.kind)
            return
        if event.owner_id is not None and event.owner_id != owner_id:
            logger.debug("change_event_foreign_owner record_id=%s", event.record_id)
            return
        self._model.apply_change(event)

    async def _close_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is not None:
            await channel.close()

    def _set_state(self, state: FeedState) -> None:
        if state is self._state:
            return
        self._state = state
        if self._on_status is not None:
            self._on_status(state)
