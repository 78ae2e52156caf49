from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from schemas.bookmark import BookmarkRow, ensure_utc


class CollectionForm(BaseModel):
    name: str
    description: str | None = None
    bookmark_ids: list[str]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("collection name is required")
        if len(v) > 100:
            raise ValueError("collection name must be at most 100 characters")
        return v

    @field_validator("description")
    @classmethod
    def normalize_description(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("bookmark_ids")
    @classmethod
    def validate_bookmark_ids(cls, v: list[str]) -> list[str]:
        # selection order defines sort_order, repeats keep the first position
        unique = list(dict.fromkeys(v))
        if not unique:
            raise ValueError("select at least one bookmark to share")
        return unique


class CollectionRow(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    user_id: str
    name: str
    slug: str
    description: str | None
    is_public: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def utc_timestamps(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class SharedCollectionView(BaseModel):
    collection: CollectionRow
    bookmarks: list[BookmarkRow]
