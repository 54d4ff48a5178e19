"""Session watcher: reacts to identity-provider transitions."""
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from schemas.session import Session, SessionEvent, UserProfile
from services.exceptions import SessionError
from services.identity import IdentityClient

logger = logging.getLogger(__name__)

LANDING_PATH = "/"
DASHBOARD_PATH = "/dashboard"


class Navigator(Protocol):
    """Moves the user between the landing view and the dashboard."""

    def navigate(self, path: str) -> None:
        """Show the view at `path`."""
        ...


class SessionWatcher:
    """
    Observes session transitions for one dashboard view.

    - SIGNED_OUT runs the signed-out handler (clear bookmarks, tear down the feed) once,
      then navigates to the landing view.
    - SIGNED_IN and USER_UPDATED only refresh the cached profile. A SIGNED_IN for a
      different account is an owner change and is forwarded to `on_owner_changed`.
    - TOKEN_REFRESHED needs no action; store calls read the token from the identity
      client.
    """

    def __init__(
        self,
        identity: IdentityClient,
        navigator: Navigator,
        on_signed_out: Callable[[], Awaitable[None]],
        on_owner_changed: Callable[[Session], Awaitable[None]] | None = None,
    ) -> None:
        self._identity = identity
        self._navigator = navigator
        self._on_signed_out = on_signed_out
        self._on_owner_changed = on_owner_changed
        self._profile: UserProfile | None = identity.session.user if identity.session else None
        self._signed_out = identity.session is None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def profile(self) -> UserProfile | None:
        """Cached profile display fields; None once signed out."""
        return self._profile

    @property
    def is_signed_in(self) -> bool:
        """False once the signed-out path has run."""
        return not self._signed_out

    def start(self) -> None:
        """Begin listening to the identity client. Calling twice does not double-subscribe."""
        if self._unsubscribe is None:
            self._unsubscribe = self._identity.on_session_change(self.handle)
        session = self._identity.session
        if session is not None:
            self._profile = session.user
            self._signed_out = False

    def stop(self) -> None:
        """Stop listening."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle(self, event: SessionEvent, session: Session | None) -> None:
        """Dispatch one session transition."""
        logger.debug("session_event event=%s", event)
        if event is SessionEvent.SIGNED_OUT:
            await self._handle_signed_out()
        elif event is SessionEvent.SIGNED_IN and session is not None:
            previous = self._profile
            self._profile = session.user
            self._signed_out = False
            if (
                previous is not None
                and previous.id != session.user.id
                and self._on_owner_changed is not None
            ):
                await self._on_owner_changed(session)
        elif event is SessionEvent.USER_UPDATED and session is not None:
            self._profile = session.user

    async def revalidate(self) -> bool:
        """
        Re-confirm the session, e.g. when the tab becomes visible again.

        Returns:
            True if still signed in. An invalid session takes the signed-out path.
        """
        try:
            session = await self._identity.get_current_session()
        except SessionError:
            session = None
        if session is None:
            await self._handle_signed_out()
            return False
        self._profile = session.user
        return True

    async def _handle_signed_out(self) -> None:
        if self._signed_out:
            return
        self._signed_out = True
        self._profile = None
        await self._on_signed_out()
        self._navigator.navigate(LANDING_PATH)
