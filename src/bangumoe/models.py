"""Data models for collection entries and Bangumi bindings."""

from datetime import datetime
from enum import Enum
from typing import Optional

import pydantic
from pydantic import BaseModel, Field

from .errors import ValidationError

RATING_MIN = 1
RATING_MAX = 10


class CollectionType(str, Enum):
    """Collection status of an anime in the user's list."""

    WATCHING = "watching"
    COMPLETED = "completed"
    WISH = "wish"
    ON_HOLD = "on_hold"
    DROPPED = "dropped"


class BindingStatus(str, Enum):
    """Bangumi binding status as known by the client."""

    UNKNOWN = "unknown"
    UNBOUND = "unbound"
    BOUND = "bound"


class AnimeSummary(BaseModel):
    """Read-only summary of the anime a collection entry points at."""

    id: Optional[int] = None
    title: str = ""
    episode_count: Optional[int] = None


class CollectionEntry(BaseModel):
    """One entry of the user's collection list."""

    id: Optional[int] = None
    anime_id: int
    type: CollectionType
    rating: Optional[int] = Field(None, ge=RATING_MIN, le=RATING_MAX)
    comment: str = ""
    anime: Optional[AnimeSummary] = None

    @pydantic.field_validator("comment", mode="before")
    @classmethod
    def none_comment_is_empty(cls, v):
        """Backends send null for an empty comment."""
        return "" if v is None else v

    @pydantic.field_validator("rating", mode="before")
    @classmethod
    def blank_rating_is_none(cls, v):
        return None if v == "" else v

    @property
    def title(self) -> str:
        if self.anime and self.anime.title:
            return self.anime.title
        return f"Anime #{self.anime_id}"


class CollectionFilter(BaseModel):
    """Active filter of the collections view."""

    type: Optional[CollectionType] = None
    rating: Optional[int] = Field(None, ge=RATING_MIN, le=RATING_MAX)

    def matches(self, entry: CollectionEntry) -> bool:
        """Check whether an entry passes this filter.

        Entries without a rating never match a rating filter.
        """
        if self.type is not None and entry.type != self.type:
            return False
        if self.rating is not None and entry.rating != self.rating:
            return False
        return True

    def as_params(self) -> dict:
        """Query parameters for the collection list endpoint."""
        params = {}
        if self.type is not None:
            params["type"] = self.type.value
        if self.rating is not None:
            params["rating"] = self.rating
        return params


class BangumiBinding(BaseModel):
    """Link between the local account and a Bangumi account."""

    user_id: Optional[int] = None
    bangumi_user_id: int
    token_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BindResult(BaseModel):
    """Response of a successful bind call."""

    bangumi_user_id: int
    username: Optional[str] = None
    nickname: Optional[str] = None
    message: Optional[str] = None


class SyncResult(BaseModel):
    """Result of a Bangumi sync operation."""

    new_animes: int = Field(default=0, ge=0)
    updated_collections: int = Field(default=0, ge=0)
    total_collections: int = Field(default=0, ge=0)


class User(BaseModel):
    """Local account."""

    id: int
    username: str
    email: Optional[str] = None


class AuthResult(BaseModel):
    """Authenticated user with its session token."""

    user: User
    token: str


class CollectionDraft(BaseModel):
    """Editable form value of the collection editor.

    Fields are loosely typed so that invalid input can be held until submit.
    """

    id: Optional[int] = None
    anime_id: Optional[int] = None
    type: Optional[str] = None
    rating: Optional[int] = None
    comment: str = ""

    @classmethod
    def from_entry(cls, entry: CollectionEntry) -> "CollectionDraft":
        return cls(
            id=entry.id,
            anime_id=entry.anime_id,
            type=entry.type.value,
            rating=entry.rating,
            comment=entry.comment,
        )

    def to_entry(self) -> CollectionEntry:
        """Validate the draft into a collection entry.

        Raises:
            ValidationError: naming the first offending field
        """
        return validate_entry(self.model_dump())


class AuthDraft(BaseModel):
    """Form value of the login / register dialog.

    Passwords are never serialized, so view state can be dumped as is.
    """

    username: str = ""
    email: str = ""
    password: str = Field("", exclude=True)
    confirm_password: str = Field("", exclude=True)


def validate_entry(data) -> CollectionEntry:
    """Build a CollectionEntry, turning pydantic errors into ValidationError."""
    if isinstance(data, CollectionEntry):
        data = data.model_dump()
    try:
        return CollectionEntry.model_validate(data)
    except pydantic.ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error.get("loc") else "entry"
        raise ValidationError(field, _describe(field, error)) from e


def _describe(field: str, error: dict) -> str:
    if field == "rating":
        return f"Rating must be between {RATING_MIN} and {RATING_MAX}"
    if field == "type":
        allowed = ", ".join(t.value for t in CollectionType)
        return f"Type must be one of: {allowed}"
    if field == "anime_id" and (error.get("type") == "missing" or error.get("input") is None):
        return "Anime id is required"
    return f"{field}: {error.get('msg', 'invalid value')}"
