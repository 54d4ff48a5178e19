"""Tests for bookmark, change event, and session schemas."""
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from schemas.bookmark import Bookmark, BookmarkInsert, ChangeEvent, ChangeKind
from schemas.session import Session, UserProfile


class TestBookmark:
    """Tests for the Bookmark row schema."""

    def test__bookmark__accepts_user_id_column(self) -> None:
        """Rows from deployments that name the owner column user_id still parse."""
        bookmark = Bookmark.model_validate({
            "id": 42,
            "user_id": "owner-1",
            "title": "Example",
            "url": "https://example.com",
            "created_at": "2025-01-01T12:00:00+00:00",
        })

        assert bookmark.id == "42"
        assert bookmark.owner_id == "owner-1"
        assert bookmark.created_at == datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def test__bookmark__is_immutable(self) -> None:
        bookmark = Bookmark(
            id="b1",
            owner_id="owner-1",
            title="t",
            url="https://example.com",
            created_at=datetime(2025, 1, 1, tzinfo=UTC),
        )
        with pytest.raises(ValidationError):
            bookmark.title = "changed"  # type: ignore[misc]

    def test__bookmark_insert__to_row(self) -> None:
        payload = BookmarkInsert(owner_id="owner-1", title="t", url="https://example.com")
        assert payload.to_row() == {
            "owner_id": "owner-1",
            "title": "t",
            "url": "https://example.com",
        }


class TestChangeEvent:
    """Tests for ChangeEvent parsing."""

    def test__change_event__realtime_payload_shape(self) -> None:
        """Upper-case eventType payloads are normalized."""
        event = ChangeEvent.model_validate({
            "eventType": "INSERT",
            "new": {
                "id": "b1",
                "owner_id": "owner-1",
                "title": "t",
                "url": "https://example.com",
                "created_at": "2025-01-01T00:00:00Z",
            },
            "old": {},
        })

        assert event.kind is ChangeKind.INSERT
        assert event.old is None
        assert event.record_id == "b1"
        assert event.owner_id == "owner-1"
        assert event.bookmark().url == "https://example.com"

    def test__change_event__delete_uses_old_record(self) -> None:
        event = ChangeEvent.model_validate({"kind": "delete", "old": {"id": 7}})

        assert event.kind is ChangeKind.DELETE
        assert event.record_id == "7"
        assert event.owner_id is None

    def test__change_event__bookmark_without_new_row_raises(self) -> None:
        event = ChangeEvent(kind=ChangeKind.DELETE, old={"id": "b1"})
        with pytest.raises(ValueError, match="no new row"):
            event.bookmark()

    def test__change_event__unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChangeEvent.model_validate({"eventType": "TRUNCATE"})


class TestSession:
    """Tests for session and profile schemas."""

    def test__user_profile__flattens_user_metadata(self) -> None:
        profile = UserProfile.model_validate({
            "id": "owner-1",
            "email": "a@example.com",
            "user_metadata": {"full_name": "Ada", "avatar_url": "https://img.example.com/a.png"},
        })

        assert profile.full_name == "Ada"
        assert profile.avatar_url == "https://img.example.com/a.png"
        assert profile.display_name == "Ada"

    def test__user_profile__display_name_falls_back_to_email(self) -> None:
        profile = UserProfile(id="owner-1", email="a@example.com")
        assert profile.display_name == "a@example.com"

    def test__session__owner_id_is_user_id(self) -> None:
        session = Session(access_token="t", user=UserProfile(id="owner-1"))
        assert session.owner_id == "owner-1"
