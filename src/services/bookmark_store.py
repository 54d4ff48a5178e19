"""Client for bookmark CRUD operations against the remote store."""
import logging
from typing import NoReturn

import httpx
from pydantic import ValidationError

from schemas.bookmark import Bookmark, BookmarkInsert
from schemas.session import Session
from services.api_client import api_delete, api_get, api_post, get_headers
from services.exceptions import SessionError, StoreUnreachableError, StoreWriteRejectedError
from shared.api_errors import parse_http_error

logger = logging.getLogger(__name__)

BOOKMARKS_PATH = "/rest/v1/bookmarks"
OWNER_COLUMN = "owner_id"


class BookmarkStoreClient:
    """
    Typed CRUD operations on the `bookmarks` table, scoped to a session's owner.

    The owner id is always taken from the session passed in, never from other caller
    input, and every request carries the session's bearer token so row-level policies
    apply on the server as well.
    """

    def __init__(self, http_client: httpx.AsyncClient, api_key: str) -> None:
        self._http = http_client
        self._api_key = api_key

    async def list(self, session: Session) -> list[Bookmark]:
        """
        List the owner's bookmarks, newest first.

        Returns:
            Bookmarks sorted by created_at descending; empty when the owner has none.

        Raises:
            StoreUnreachableError: On transport errors, server errors, or malformed rows.
            SessionError: If the store rejects the session token.
        """
        params = {
            "select": "*",
            OWNER_COLUMN: f"eq.{session.owner_id}",
            "order": "created_at.desc",
        }
        try:
            rows = await api_get(
                self._http,
                BOOKMARKS_PATH,
                get_headers(self._api_key, session.access_token),
                params=params,
            )
        except httpx.HTTPStatusError as e:
            info = parse_http_error(e, entity_type="bookmark")
            if info.category == "auth":
                raise SessionError(info.message) from e
            logger.warning("bookmark_list_failed owner_id=%s error=%s", session.owner_id, info.message)  # noqa: E501
            raise StoreUnreachableError(info.message) from e
        except httpx.TransportError as e:
            logger.warning("bookmark_list_unreachable owner_id=%s error=%s", session.owner_id, e)
            raise StoreUnreachableError(f"Store unreachable: {e}") from e

        try:
            bookmarks = [Bookmark.model_validate(row) for row in rows or []]
        except ValidationError as e:
            raise StoreUnreachableError(f"Store returned malformed bookmark rows: {e}") from e
        bookmarks.sort(key=lambda b: b.created_at, reverse=True)
        return bookmarks

    async def insert(self, session: Session, title: str, url: str) -> Bookmark:
        """
        Insert a bookmark for the session's owner.

        The store assigns `id` and `created_at` and returns the stored row.

        Raises:
            StoreWriteRejectedError: On constraint violations, transport errors, or an
                unusable response.
            SessionError: If the store rejects the session token.
        """
        payload = BookmarkInsert(owner_id=session.owner_id, title=title, url=url)
        try:
            rows = await api_post(
                self._http,
                BOOKMARKS_PATH,
                get_headers(self._api_key, session.access_token, prefer="return=representation"),
                json=payload.to_row(),
            )
        except httpx.HTTPStatusError as e:
            self._raise_write_error(e, session)
        except httpx.TransportError as e:
            logger.warning("bookmark_insert_unreachable owner_id=%s error=%s", session.owner_id, e)
            raise StoreWriteRejectedError(f"Failed to add bookmark: {e}") from e

        row = rows[0] if isinstance(rows, list) and rows else rows
        if not isinstance(row, dict):
            raise StoreWriteRejectedError("Store did not return the inserted bookmark")
        try:
            bookmark = Bookmark.model_validate(row)
        except ValidationError as e:
            raise StoreWriteRejectedError(f"Store returned a malformed bookmark: {e}") from e
        logger.info("bookmark_inserted owner_id=%s bookmark_id=%s", session.owner_id, bookmark.id)
        return bookmark

    async def delete(self, session: Session, bookmark_id: str) -> bool:
        """
        Delete a bookmark by id.

        Idempotent: a bookmark that no longer exists (e.g. removed by another tab) is not
        an error.

        Returns:
            True if a row was removed, False if nothing matched.

        Raises:
            StoreWriteRejectedError: On transport errors or a rejected delete.
            SessionError: If the store rejects the session token.
        """
        try:
            rows = await api_delete(
                self._http,
                BOOKMARKS_PATH,
                get_headers(self._api_key, session.access_token, prefer="return=representation"),
                params={"id": f"eq.{bookmark_id}"},
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.debug("bookmark_delete_missing bookmark_id=%s", bookmark_id)
                return False
            self._raise_write_error(e, session, bookmark_id)
        except httpx.TransportError as e:
            logger.warning("bookmark_delete_unreachable bookmark_id=%s error=%s", bookmark_id, e)
            raise StoreWriteRejectedError(f"Failed to delete bookmark: {e}") from e

        deleted = bool(rows)
        if not deleted:
            logger.debug("bookmark_delete_missing bookmark_id=%s", bookmark_id)
        return deleted

    @staticmethod
    def _raise_write_error(
        e: httpx.HTTPStatusError,
        session: Session,
        bookmark_id: str = "",
    ) -> NoReturn:
        """Translate an HTTP error on a write into the store error taxonomy. Always raises."""
        info = parse_http_error(e, entity_type="bookmark", entity_id=bookmark_id)
        if info.category == "auth":
            raise SessionError(info.message) from e
        logger.warning(
            "bookmark_write_rejected owner_id=%s category=%s error=%s",
            session.owner_id,
            info.category,
            info.message,
        )
        raise StoreWriteRejectedError(info.message) from e
