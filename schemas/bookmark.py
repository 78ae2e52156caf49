from datetime import UTC, datetime
from typing import Self
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, field_validator

from models.models import TAG_COLORS

# prevent javascript: XSS and other dangerous schemes
ALLOWED_URL_SCHEMES = {"http", "https"}
TITLE_MAX_LENGTH = 100


def validate_url(v: str) -> str:
    v = v.strip()
    parsed = urlparse(v)
    scheme = parsed.scheme.lower()

    if not scheme:
        raise ValueError("url must include a scheme (e.g., https://)")

    if scheme not in ALLOWED_URL_SCHEMES:
        raise ValueError(f"url scheme '{scheme}' is not allowed. valid schemes: http, https")

    if not parsed.netloc:
        raise ValueError("url must include a host")

    return v


def validate_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("title is required")
    if len(v) > TITLE_MAX_LENGTH:
        raise ValueError(f"title must be at most {TITLE_MAX_LENGTH} characters")
    return v


def ensure_utc(v: datetime) -> datetime:
    # sqlite hands back naive values, freshly flushed rows are already aware
    return v.replace(tzinfo=UTC) if v.tzinfo is None else v.astimezone(UTC)


class BookmarkRow(BaseModel):
    """a bookmarks row as fetched from the store or carried by a change event."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    user_id: str
    url: str
    title: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def utc_created_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class TagRow(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    user_id: str
    name: str
    color: str = TAG_COLORS[0]
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def utc_created_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class BookmarkWithTags(BookmarkRow):
    """bookmark plus its tags ordered by name; derived, never persisted."""

    tags: tuple[TagRow, ...] = ()

    @classmethod
    def from_row(cls, row: BookmarkRow, tags: tuple[TagRow, ...] = ()) -> Self:
        return cls(**row.model_dump(), tags=tags)

    def replace_bookmark(self, row: BookmarkRow) -> Self:
        return self.model_copy(update=row.model_dump())

    def replace_tags(self, tags: tuple[TagRow, ...]) -> Self:
        return self.model_copy(update={"tags": tags})

    @property
    def tag_ids(self) -> set[str]:
        return {tag.id for tag in self.tags}


class BookmarkForm(BaseModel):
    url: str
    title: str

    @field_validator("url")
    @classmethod
    def validate_url_scheme(cls, v: str) -> str:
        return validate_url(v)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return validate_title(v)


class BookmarkPatch(BaseModel):
    url: str | None = None
    title: str | None = None

    @field_validator("url")
    @classmethod
    def validate_url_scheme(cls, v: str | None) -> str | None:
        return validate_url(v) if v is not None else None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return validate_title(v) if v is not None else None


class TitleRequest(BaseModel):
    url: str
