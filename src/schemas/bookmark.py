"""Pydantic schemas for bookmark rows and change-feed events."""
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Bookmark(BaseModel):
    """A bookmark row as returned by the store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    # Older deployments named the partition column user_id
    owner_id: str = Field(validation_alias=AliasChoices("owner_id", "user_id"))
    title: str
    url: str
    created_at: datetime

    @field_validator("id", "owner_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        """Identifiers are opaque; accept UUIDs and integers as strings."""
        if v is None or isinstance(v, str):
            return v
        return str(v)


class BookmarkInsert(BaseModel):
    """Schema for inserting a new bookmark row."""

    owner_id: str
    title: str
    url: str

    def to_row(self) -> dict[str, str]:
        """Serialize to the store's column layout."""
        return self.model_dump()


class ChangeKind(StrEnum):
    """Row-level change delivered by the change feed."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """
    A row-level change notification for the bookmarks table.

    Accepts both the compact shape (`{"kind": "insert", "new": {...}}`) and the realtime
    payload shape (`{"eventType": "INSERT", "new": {...}, "old": {...}}`).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    kind: ChangeKind = Field(validation_alias=AliasChoices("kind", "eventType", "type"))
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        """Event kinds arrive upper-case from the realtime server."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("new", "old", mode="before")
    @classmethod
    def empty_record_is_none(cls, v: Any) -> Any:
        """Realtime sends `{}` for the side of the change that does not exist."""
        if v == {}:
            return None
        return v

    @property
    def record_id(self) -> str | None:
        """Id of the affected row, from the new representation or the old one."""
        for record in (self.new, self.old):
            if record and record.get("id") is not None:
                return str(record["id"])
        return None

    @property
    def owner_id(self) -> str | None:
        """Owner of the affected row, if the payload carries it."""
        for record in (self.new, self.old):
            if not record:
                continue
            owner = record.get("owner_id", record.get("user_id"))
            if owner is not None:
                return str(owner)
        return None

    def bookmark(self) -> Bookmark:
        """
        Build the Bookmark carried by an insert or update event.

        Raises:
            ValueError: If the event has no new row representation.
            pydantic.ValidationError: If the new row is incomplete.
        """
        if not self.new:
            raise ValueError(f"{self.kind} event has no new row")
        return Bookmark.model_validate(self.new)
