"""Client for the identity provider's session endpoints."""
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import jwt
from pydantic import ValidationError

from schemas.session import Session, SessionEvent, UserProfile
from services.api_client import api_get, api_post, get_headers
from services.exceptions import SessionError
from shared.api_errors import parse_http_error

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/v1"

SessionCallback = Callable[[SessionEvent, Session | None], Awaitable[None] | None]


def token_expiry(access_token: str) -> int | None:
    """
    Read the `exp` claim from an access token without verifying it.

    The client only uses this to decide when to refresh; the store verifies the
    signature on every request.
    """
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    return int(exp) if isinstance(exp, int | float) else None


class IdentityClient:
    """
    Holds the current session and reports its transitions.

    Session issuance (the OAuth redirect) happens elsewhere; its result is handed to
    `set_session`. Listeners registered with `on_session_change` receive
    `(event, session)` for SIGNED_IN, SIGNED_OUT, USER_UPDATED, and TOKEN_REFRESHED.
    """

    REFRESH_MARGIN_SECONDS = 60

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        session: Session | None = None,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._session = session
        self._callbacks: list[SessionCallback] = []

    @property
    def session(self) -> Session | None:
        """The cached session, without contacting the provider."""
        return self._session

    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]:
        """Register a session transition listener; returns a callable that removes it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def set_session(self, session: Session) -> None:
        """Adopt a freshly issued session."""
        self._session = session
        logger.info("session_signed_in owner_id=%s", session.owner_id)
        await self._emit(SessionEvent.SIGNED_IN, session)

    async def get_current_session(self) -> Session | None:
        """
        Re-confirm the cached session with the provider.

        Refreshes the token first when it is about to expire. A rejected token clears the
        session and emits SIGNED_OUT. A provider that cannot be reached leaves the cached
        session in place.

        Returns:
            The confirmed session, or None when signed out.
        """
        session = self._session
        if session is None:
            return None

        if self._needs_refresh(session) and session.refresh_token:
            try:
                session = await self.refresh_session()
            except SessionError:
                return self._session

        try:
            data = await api_get(
                self._http,
                f"{AUTH_PATH}/user",
                get_headers(self._api_key, session.access_token),
            )
        except httpx.HTTPStatusError as e:
            info = parse_http_error(e)
            if info.category in ("auth", "forbidden"):
                logger.info("session_rejected owner_id=%s", session.owner_id)
                await self._clear()
                return None
            logger.warning("session_check_failed owner_id=%s error=%s", session.owner_id, info.message)  # noqa: E501
            return session
        except httpx.TransportError as e:
            logger.warning("session_check_unreachable owner_id=%s error=%s", session.owner_id, e)
            return session

        try:
            profile = UserProfile.model_validate(data)
        except ValidationError as e:
            logger.warning("session_profile_malformed error=%s", e)
            return session
        if self._session is not session:
            # Signed out or replaced while the request was in flight
            return self._session
        if profile != session.user:
            session = session.model_copy(update={"user": profile})
            self._session = session
            await self._emit(SessionEvent.USER_UPDATED, session)
        return session

    async def refresh_session(self) -> Session:
        """
        Exchange the refresh token for a new session.

        Raises:
            SessionError: If there is no refresh token, the provider rejects it (the
                session is then cleared), or the provider cannot be reached.
        """
        current = self._session
        if current is None or not current.refresh_token:
            raise SessionError("No session to refresh")
        try:
            data = await api_post(
                self._http,
                f"{AUTH_PATH}/token",
                get_headers(self._api_key),
                json={"refresh_token": current.refresh_token},
                params={"grant_type": "refresh_token"},
            )
        except httpx.HTTPStatusError as e:
            info = parse_http_error(e)
            logger.info("session_refresh_rejected owner_id=%s error=%s", current.owner_id, info.message)  # noqa: E501
            await self._clear()
            raise SessionError(info.message) from e
        except httpx.TransportError as e:
            logger.warning("session_refresh_unreachable owner_id=%s error=%s", current.owner_id, e)
            raise SessionError(f"Identity provider unreachable: {e}") from e

        try:
            session = self._session_from_token_response(data, current)
        except ValidationError as e:
            raise SessionError(f"Malformed token response: {e}") from e
        self._session = session
        logger.debug("session_token_refreshed owner_id=%s", session.owner_id)
        await self._emit(SessionEvent.TOKEN_REFRESHED, session)
        return session

    async def sign_out(self) -> None:
        """
        Revoke the session and emit SIGNED_OUT.

        The local session is cleared even if the revoke request fails.
        """
        session = self._session
        if session is None:
            return
        try:
            await api_post(
                self._http,
                f"{AUTH_PATH}/logout",
                get_headers(self._api_key, session.access_token),
            )
        except httpx.HTTPError as e:
            logger.warning("session_revoke_failed owner_id=%s error=%s", session.owner_id, e)
        await self._clear()

    def _needs_refresh(self, session: Session) -> bool:
        expires_at = session.expires_at or token_expiry(session.access_token)
        if expires_at is None:
            return False
        return expires_at - time.time() < self.REFRESH_MARGIN_SECONDS

    @staticmethod
    def _session_from_token_response(data: dict[str, Any], current: Session) -> Session:
        payload = dict(data)
        payload.setdefault("user", current.user.model_dump())
        payload.setdefault("refresh_token", current.refresh_token)
        if payload.get("expires_at") is None and payload.get("expires_in") is not None:
            payload["expires_at"] = int(time.time()) + int(payload["expires_in"])
        return Session.model_validate(payload)

    async def _clear(self) -> None:
        if self._session is None:
            return
        owner_id = self._session.owner_id
        self._session = None
        logger.info("session_signed_out owner_id=%s", owner_id)
        await self._emit(SessionEvent.SIGNED_OUT, None)

    async def _emit(self, event: SessionEvent, session: Session | None) -> None:
        for callback in list(self._callbacks):
            try:
                result = callback(event, session)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("session_callback_failed event=%s", event)
