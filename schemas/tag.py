from pydantic import BaseModel, field_validator

from models.models import TAG_COLORS

TAG_NAME_MAX_LENGTH = 50


def _validate_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("tag name is required")
    if len(v) > TAG_NAME_MAX_LENGTH:
        raise ValueError(f"tag name must be at most {TAG_NAME_MAX_LENGTH} characters")
    return v


class TagForm(BaseModel):
    name: str
    color: str = TAG_COLORS[0]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)

    @field_validator("color")
    @classmethod
    def normalize_color(cls, v: str) -> str:
        # palette is a suggestion, arbitrary strings are kept
        return v.strip() or TAG_COLORS[0]


class TagPatch(BaseModel):
    name: str | None = None
    color: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return _validate_name(v) if v is not None else None
