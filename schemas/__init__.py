from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from schemas.auth import LoginForm, RegisterForm, UserOut
from schemas.bookmark import (
    BookmarkForm,
    BookmarkPatch,
    BookmarkRow,
    BookmarkWithTags,
    TagRow,
    TitleRequest,
)
from schemas.collection import CollectionForm, CollectionRow, SharedCollectionView
from schemas.live import FilterCommand, LiveSnapshot, RefreshCommand, live_command_adapter
from schemas.tag import TagForm, TagPatch

# pydantic prefixes custom validator messages with this
_PYDANTIC_VALUE_ERROR_PREFIX = "Value error, "


def _clean_message(msg: str) -> str:
    if msg.startswith(_PYDANTIC_VALUE_ERROR_PREFIX):
        return msg[len(_PYDANTIC_VALUE_ERROR_PREFIX) :]
    return msg


def extract_validation_error(e: ValidationError | RequestValidationError) -> str:
    return _clean_message(e.errors()[0]["msg"])


def extract_validation_errors(e: ValidationError | RequestValidationError) -> list[str]:
    return [_clean_message(error["msg"]) for error in e.errors()]


__all__ = [
    "RegisterForm",
    "LoginForm",
    "UserOut",
    "BookmarkForm",
    "BookmarkPatch",
    "BookmarkRow",
    "BookmarkWithTags",
    "TagRow",
    "TitleRequest",
    "TagForm",
    "TagPatch",
    "CollectionForm",
    "CollectionRow",
    "SharedCollectionView",
    "FilterCommand",
    "RefreshCommand",
    "LiveSnapshot",
    "live_command_adapter",
    "extract_validation_error",
    "extract_validation_errors",
]
