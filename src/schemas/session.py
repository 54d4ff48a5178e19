"""Schemas for identity-provider sessions."""
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class SessionEvent(StrEnum):
    """Session transitions reported by the identity provider."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class UserProfile(BaseModel):
    """Profile fields shown next to the bookmark list."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    email: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None

    @model_validator(mode="before")
    @classmethod
    def flatten_user_metadata(cls, data: Any) -> Any:
        """Lift `user_metadata.full_name` / `avatar_url` from provider user objects."""
        if not isinstance(data, dict):
            return data
        metadata = data.get("user_metadata") or {}
        flattened = dict(data)
        for key in ("full_name", "avatar_url"):
            if flattened.get(key) is None and metadata.get(key) is not None:
                flattened[key] = metadata[key]
        if flattened.get("id") is not None:
            flattened["id"] = str(flattened["id"])
        return flattened

    @property
    def display_name(self) -> str:
        """Full name when known, otherwise the email address."""
        return self.full_name or self.email or ""


class Session(BaseModel):
    """An authenticated session; `owner_id` partitions the visible bookmarks."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None
    user: UserProfile

    @property
    def owner_id(self) -> str:
        """Owner identifier used for every store request."""
        return self.user.id
