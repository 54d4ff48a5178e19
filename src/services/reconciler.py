"""Reconciliation trigger: authoritative full re-fetches of the owner's bookmarks."""
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from core.events import BookmarkMutated, EventBus, OwnerChanged, RefreshRequested, VisibilityChanged
from schemas.session import Session
from services.bookmark_list import BookmarkListModel
from services.bookmark_store import BookmarkStoreClient
from services.exceptions import SessionError, StoreUnreachableError

logger = logging.getLogger(__name__)

SessionProvider = Callable[[], Session | None]
UnauthenticatedHandler = Callable[[], Awaitable[None]]


class ReconcileReason(StrEnum):
    """Why a re-fetch was issued."""

    INITIAL_LOAD = "initial-load"
    VISIBLE = "visible"
    USER_REFRESH = "user-refresh"
    LOCAL_MUTATION = "local-mutation"
    OWNER_CHANGE = "owner-change"


class Reconciler:
    """
    Issues full `list` re-fetches and applies them to the view model.

    Every request is tagged with a monotonic sequence number and the owner captured when
    it was issued. When a response arrives it is applied only if no newer request has
    been issued since and the model still belongs to the same owner; anything else is a
    superseded or stale result and is discarded.
    """

    def __init__(
        self,
        store: BookmarkStoreClient,
        model: BookmarkListModel,
        session_provider: SessionProvider,
        on_unauthenticated: UnauthenticatedHandler | None = None,
    ) -> None:
        self._store = store
        self._model = model
        self._session_provider = session_provider
        self._on_unauthenticated = on_unauthenticated
        self._sequence = 0
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def sequence(self) -> int:
        """Sequence number of the most recently issued (or invalidated) request."""
        return self._sequence

    def invalidate(self) -> None:
        """Supersede every in-flight request; their results will be discarded."""
        self._sequence += 1

    async def reconcile(self, reason: ReconcileReason = ReconcileReason.USER_REFRESH) -> bool:
        """
        Re-fetch the owner's bookmarks and replace the model's contents.

        Returns:
            True if the result was applied; False if there was no session, the result was
            superseded or stale, or the store could not be reached.
        """
        session = self._session_provider()
        if session is None:
            return False
        self._sequence += 1
        sequence = self._sequence
        owner_id = session.owner_id
        logger.debug("reconcile_start owner_id=%s reason=%s seq=%s", owner_id, reason, sequence)

        try:
            bookmarks = await self._store.list(session)
        except StoreUnreachableError as e:
            if self._is_current(sequence, owner_id):
                self._model.mark_refresh_failed()
            logger.warning("reconcile_failed owner_id=%s reason=%s error=%s", owner_id, reason, e)
            return False
        except SessionError:
            if self._is_current(sequence, owner_id) and self._on_unauthenticated is not None:
                await self._on_unauthenticated()
            return False

        if not self._is_current(sequence, owner_id):
            logger.debug(
                "reconcile_discarded owner_id=%s seq=%s latest=%s",
                owner_id,
                sequence,
                self._sequence,
            )
            return False
        self._model.replace_all(bookmarks)
        logger.debug("reconcile_applied owner_id=%s count=%s", owner_id, len(bookmarks))
        return True

    def attach(self, bus: EventBus) -> None:
        """Subscribe to the bus events that trigger reconciliation."""
        self.detach()
        self._unsubscribers = [
            bus.subscribe(VisibilityChanged, self._on_visibility),
            bus.subscribe(RefreshRequested, self._on_refresh),
            bus.subscribe(BookmarkMutated, self._on_mutated),
            bus.subscribe(OwnerChanged, self._on_owner_changed),
        ]

    def detach(self) -> None:
        """Remove all bus subscriptions."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _is_current(self, sequence: int, owner_id: str) -> bool:
        return sequence == self._sequence and self._model.owner_id == owner_id

    async def _on_visibility(self, event: VisibilityChanged) -> None:
        if event.visible:
            await self.reconcile(ReconcileReason.VISIBLE)

    async def _on_refresh(self, _event: RefreshRequested) -> None:
        await self.reconcile(ReconcileReason.USER_REFRESH)

    async def _on_mutated(self, event: BookmarkMutated) -> None:
        if event.owner_id == self._model.owner_id:
            await self.reconcile(ReconcileReason.LOCAL_MUTATION)

    async def _on_owner_changed(self, event: OwnerChanged) -> None:
        if event.owner_id is None:
            self.invalidate()
            return
        await self.reconcile(ReconcileReason.OWNER_CHANGE)
