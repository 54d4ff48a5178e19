"""
Typed in-process event bus.

Components publish and subscribe to small frozen event records instead of registering
ambient listeners on the document. Handlers run in subscription order and may be plain
functions or coroutines; a failing handler is logged and does not stop the others.
"""
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")

Handler = Callable[[Any], Awaitable[None] | None]


class MutationKind(StrEnum):
    """Local write that just completed."""

    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class VisibilityChanged:
    """The tab/document became visible or hidden."""

    visible: bool


@dataclass(frozen=True)
class RefreshRequested:
    """The user explicitly asked for a refresh."""


@dataclass(frozen=True)
class BookmarkMutated:
    """A local insert or delete was confirmed (or found to be a no-op) by the store."""

    owner_id: str
    kind: MutationKind
    bookmark_id: str


@dataclass(frozen=True)
class OwnerChanged:
    """The authenticated owner changed; `owner_id` is None after sign-out."""

    owner_id: str | None


class EventBus:
    """Publish/subscribe dispatcher keyed by event type."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = {}

    def subscribe(self, event_type: type[E], handler: Callable[[E], Awaitable[None] | None]) -> Callable[[], None]:  # noqa: E501
        """
        Register a handler for an event type.

        Returns:
            A callable that removes the handler; calling it twice is harmless.
        """
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def handler_count(self, event_type: type) -> int:
        """Number of handlers currently registered for an event type."""
        return len(self._handlers.get(event_type, []))

    async def publish(self, event: object) -> None:
        """Deliver an event to every handler registered for its exact type."""
        # Copy so handlers may unsubscribe while being dispatched
        for handler in list(self._handlers.get(type(event), [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("event_handler_failed event=%s", type(event).__name__)
