"""In-memory list view model for one owner's bookmarks."""
import logging
from collections.abc import Callable, Iterable, Iterator

from pydantic import ValidationError

from schemas.bookmark import Bookmark, ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

Listener = Callable[["BookmarkListModel"], None]


class BookmarkListModel:
    """
    Ordered bookmarks for the current owner, newest first, keyed by id.

    This is the single source of truth the UI renders. Two kinds of updates merge into
    it:

    - `replace_all` takes a full re-fetch result and replaces everything (the fetch is
      authoritative; entries the feed added that the fetch lacks are dropped).
    - `apply_insert` / `apply_update` / `apply_delete` patch individual rows by id.

    No two entries ever share an id. Patched inserts are placed by `created_at`, so a
    newly created row lands at the top the same way a prepend would.
    """

    def __init__(self, owner_id: str | None = None, bookmarks: Iterable[Bookmark] = ()) -> None:
        self._owner_id = owner_id
        self._items: list[Bookmark] = []
        self._listeners: list[Listener] = []
        self.refresh_failed = False
        if bookmarks:
            self._items = self._dedupe_sorted(bookmarks)

    @property
    def owner_id(self) -> str | None:
        """Owner whose bookmarks this model holds."""
        return self._owner_id

    @property
    def bookmarks(self) -> tuple[Bookmark, ...]:
        """Snapshot of the current entries in display order."""
        return tuple(self._items)

    @property
    def ids(self) -> list[str]:
        """Ids in display order."""
        return [b.id for b in self._items]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Bookmark]:
        return iter(tuple(self._items))

    def __contains__(self, bookmark_id: object) -> bool:
        return self._index_of(bookmark_id) is not None

    def get(self, bookmark_id: str) -> Bookmark | None:
        """Return the entry with this id, if present."""
        index = self._index_of(bookmark_id)
        return None if index is None else self._items[index]

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a re-render callback; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Full replace
    # ------------------------------------------------------------------

    def replace_all(self, bookmarks: Iterable[Bookmark]) -> None:
        """Replace every entry with an authoritative fetch result."""
        self._items = self._dedupe_sorted(bookmarks)
        self.refresh_failed = False
        self._notify()

    def reset(self, owner_id: str | None = None) -> None:
        """Clear all entries and bind the model to a new owner (or none)."""
        self._owner_id = owner_id
        self._items = []
        self.refresh_failed = False
        self._notify()

    def mark_refresh_failed(self) -> None:
        """Keep the last-known entries but flag that a refresh did not succeed."""
        if not self.refresh_failed:
            self.refresh_failed = True
            self._notify()

    # ------------------------------------------------------------------
    # Patches
    # ------------------------------------------------------------------

    def apply_insert(self, bookmark: Bookmark) -> bool:
        """
        Add a bookmark unless one with the same id is already present.

        Returns:
            True if the entry was added.
        """
        if bookmark.id in self:
            logger.debug("bookmark_insert_duplicate bookmark_id=%s", bookmark.id)
            return False
        position = 0
        while (
            position < len(self._items)
            and self._items[position].created_at > bookmark.created_at
        ):
            position += 1
        self._items.insert(position, bookmark)
        self._notify()
        return True

    def apply_update(self, bookmark: Bookmark) -> bool:
        """Replace the entry with the same id in place; no-op if absent."""
        index = self._index_of(bookmark.id)
        if index is None:
            logger.debug("bookmark_update_missing bookmark_id=%s", bookmark.id)
            return False
        self._items[index] = bookmark
        self._notify()
        return True

    def apply_delete(self, bookmark_id: str) -> Bookmark | None:
        """Remove the entry with this id; returns it, or None if absent."""
        removed = self.remove(bookmark_id)
        return None if removed is None else removed[1]

    def apply_change(self, event: ChangeEvent) -> bool:
        """
        Patch the list from a change-feed event.

        Returns:
            True if the list changed.
        """
        if event.kind is ChangeKind.DELETE:
            record_id = event.record_id
            return record_id is not None and self.apply_delete(record_id) is not None
        try:
            bookmark = event.bookmark()
        except (ValueError, ValidationError) as e:
            logger.warning("change_event_malformed kind=%s error=%s", event.kind, e)
            return False
        if event.kind is ChangeKind.INSERT:
            return self.apply_insert(bookmark)
        return self.apply_update(bookmark)

    # ------------------------------------------------------------------
    # Optimistic removal
    # ------------------------------------------------------------------

    def remove(self, bookmark_id: str) -> tuple[int, Bookmark] | None:
        """Remove an entry, returning its former position for `restore`."""
        index = self._index_of(bookmark_id)
        if index is None:
            return None
        bookmark = self._items.pop(index)
        self._notify()
        return index, bookmark

    def restore(self, index: int, bookmark: Bookmark) -> None:
        """Put back an entry removed by `remove` (rollback of an optimistic delete)."""
        if bookmark.id in self:
            return
        self._items.insert(min(index, len(self._items)), bookmark)
        self._notify()

    # ------------------------------------------------------------------

    def _index_of(self, bookmark_id: object) -> int | None:
        for index, bookmark in enumerate(self._items):
            if bookmark.id == bookmark_id:
                return index
        return None

    @staticmethod
    def _dedupe_sorted(bookmarks: Iterable[Bookmark]) -> list[Bookmark]:
        """Keep the first row per id, ordered by created_at descending."""
        seen: set[str] = set()
        unique = []
        for bookmark in bookmarks:
            if bookmark.id not in seen:
                seen.add(bookmark.id)
                unique.append(bookmark)
        # Stable sort keeps the store's order for identical timestamps
        unique.sort(key=lambda b: b.created_at, reverse=True)
        return unique

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
