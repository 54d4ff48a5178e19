"""
Dashboard view wiring.

One `BookmarkDashboard` corresponds to one open dashboard view: it owns the list view
model, the change feed subscription, the reconciler, and the session watcher, and
exposes the user actions (submit, delete, refresh) plus the environment signals
(visibility, sign-out) as direct method calls.
"""
import logging

import httpx

from core.config import Settings
from core.events import BookmarkMutated, EventBus, MutationKind, OwnerChanged, RefreshRequested, VisibilityChanged  # noqa: E501
from schemas.bookmark import Bookmark
from schemas.session import Session
from schemas.validators import DEFAULT_MAX_TITLE_LENGTH, validate_submission
from services.bookmark_list import BookmarkListModel
from services.bookmark_store import BookmarkStoreClient
from services.change_feed import ChangeFeedSubscriber, ChannelFactory
from services.exceptions import BookmarkValidationError, SessionError, StoreWriteRejectedError
from services.feed_transport import SseChangeChannel
from services.identity import IdentityClient
from services.reconciler import Reconciler, ReconcileReason
from services.session_watcher import Navigator, SessionWatcher

logger = logging.getLogger(__name__)

ADD_FAILED_MESSAGE = "Failed to add bookmark"
DELETE_FAILED_MESSAGE = "Failed to delete bookmark"


class BookmarkDashboard:
    """Composition of the sync components for one dashboard view instance."""

    def __init__(
        self,
        store: BookmarkStoreClient,
        identity: IdentityClient,
        channel_factory: ChannelFactory,
        navigator: Navigator,
        *,
        bus: EventBus | None = None,
        max_title_length: int = DEFAULT_MAX_TITLE_LENGTH,
        feed_retry_initial_seconds: float = 1.0,
        feed_retry_max_seconds: float = 30.0,
    ) -> None:
        self._store = store
        self._identity = identity
        self._max_title_length = max_title_length
        self.bus = bus or EventBus()
        self.model = BookmarkListModel()
        self.subscriber = ChangeFeedSubscriber(
            channel_factory,
            self.model,
            retry_initial_seconds=feed_retry_initial_seconds,
            retry_max_seconds=feed_retry_max_seconds,
        )
        self.reconciler = Reconciler(
            store,
            self.model,
            lambda: identity.session,
            on_unauthenticated=self._handle_unauthenticated,
        )
        self.watcher = SessionWatcher(
            identity,
            navigator,
            on_signed_out=self.teardown,
            on_owner_changed=self.switch_owner,
        )
        # Inline message for the URL/title fields, and a dismissable one for store failures
        self.field_error: str | None = None
        self.error_message: str | None = None

    @property
    def bookmarks(self) -> tuple[Bookmark, ...]:
        """Current entries in display order, newest first."""
        return self.model.bookmarks

    @property
    def is_live(self) -> bool:
        """Connectivity indicator for the change feed."""
        return self.subscriber.is_live

    async def start(self) -> None:
        """
        Bind the view to the signed-in owner, subscribe, and load the list.

        Raises:
            SessionError: If nobody is signed in.
        """
        session = self._require_session()
        self.model.reset(session.owner_id)
        self.reconciler.attach(self.bus)
        self.watcher.start()
        await self.subscriber.subscribe(session.owner_id)
        await self.reconciler.reconcile(ReconcileReason.INITIAL_LOAD)

    async def close(self) -> None:
        """Unmount the view: tear down and stop listening."""
        await self.teardown()
        self.reconciler.detach()
        self.watcher.stop()

    async def submit(self, raw_url: str, raw_title: str | None = None) -> Bookmark:
        """
        Validate and store a new bookmark.

        Raises:
            BookmarkValidationError: Input rejected; nothing was sent to the store.
            StoreWriteRejectedError: The store rejected the insert.
            SessionError: Nobody is signed in or the session was rejected.
        """
        self.field_error = None
        try:
            url, title = validate_submission(raw_url, raw_title, self._max_title_length)
        except BookmarkValidationError as e:
            self.field_error = str(e)
            raise
        session = self._require_session()
        self.error_message = None
        try:
            bookmark = await self._store.insert(session, title, url)
        except StoreWriteRejectedError as e:
            self.error_message = str(e) or ADD_FAILED_MESSAGE
            raise
        except SessionError:
            await self._handle_unauthenticated()
            raise

        if self.model.owner_id == session.owner_id:
            self.model.apply_insert(bookmark)
        await self.bus.publish(BookmarkMutated(session.owner_id, MutationKind.INSERT, bookmark.id))
        return bookmark

    async def delete(self, bookmark_id: str) -> bool:
        """
        Delete a bookmark, removing it from the view before the store confirms.

        A bookmark that is already gone (for example deleted from another tab) is not an
        error. On failure the entry is put back.

        Returns:
            True if the store removed a row.

        Raises:
            StoreWriteRejectedError: The store rejected the delete (rolled back).
            SessionError: Nobody is signed in or the session was rejected (rolled back).
        """
        session = self._require_session()
        self.error_message = None
        removed = self.model.remove(bookmark_id)
        try:
            deleted = await self._store.delete(session, bookmark_id)
        except StoreWriteRejectedError:
            self._rollback_delete(session, removed)
            self.error_message = DELETE_FAILED_MESSAGE
            raise
        except SessionError:
            self._rollback_delete(session, removed)
            await self._handle_unauthenticated()
            raise

        await self.bus.publish(BookmarkMutated(session.owner_id, MutationKind.DELETE, bookmark_id))
        return deleted

    async def refresh(self) -> None:
        """Explicit user-initiated refresh."""
        await self.bus.publish(RefreshRequested())

    async def set_visibility(self, visible: bool) -> None:
        """Tab/document visibility changed; re-confirm the session before re-fetching."""
        if visible and not await self.watcher.revalidate():
            return
        await self.bus.publish(VisibilityChanged(visible))

    async def switch_owner(self, session: Session) -> None:
        """Rebind the view to a different account, discarding the old owner's state."""
        logger.info("dashboard_owner_changed owner_id=%s", session.owner_id)
        self.reconciler.invalidate()
        self.model.reset(session.owner_id)
        await self.subscriber.subscribe(session.owner_id)
        await self.bus.publish(OwnerChanged(session.owner_id))

    async def sign_out(self) -> None:
        """Sign out; the watcher clears state and navigates away on SIGNED_OUT."""
        await self._identity.sign_out()

    async def teardown(self) -> None:
        """Discard in-flight fetches, unsubscribe the feed, and clear the list."""
        self.reconciler.invalidate()
        await self.subscriber.unsubscribe()
        self.model.reset(None)
        self.field_error = None
        self.error_message = None
        await self.bus.publish(OwnerChanged(None))

    def dismiss_error(self) -> None:
        """Clear the dismissable store-failure message."""
        self.error_message = None

    def _require_session(self) -> Session:
        session = self._identity.session
        if session is None:
            raise SessionError()
        return session

    def _rollback_delete(self, session: Session, removed: tuple[int, Bookmark] | None) -> None:
        if removed is not None and self.model.owner_id == session.owner_id:
            self.model.restore(*removed)

    async def _handle_unauthenticated(self) -> None:
        """The store rejected our token: treat it as a sign-out (redirect, no message)."""
        logger.info("dashboard_session_rejected")
        await self._identity.sign_out()


def build_dashboard(
    settings: Settings,
    http_client: httpx.AsyncClient,
    identity: IdentityClient,
    navigator: Navigator,
) -> BookmarkDashboard:
    """Construct a dashboard whose store and feed share one HTTP client."""
    store = BookmarkStoreClient(http_client, settings.store_api_key)

    def channel_factory(owner_id: str) -> SseChangeChannel:
        session = identity.session
        return SseChangeChannel(
            http_client,
            settings.store_api_key,
            owner_id,
            token=session.access_token if session else None,
            feed_path=settings.feed_path,
        )

    return BookmarkDashboard(
        store,
        identity,
        channel_factory,
        navigator,
        max_title_length=settings.max_title_length,
        feed_retry_initial_seconds=settings.feed_retry_initial_seconds,
        feed_retry_max_seconds=settings.feed_retry_max_seconds,
    )
