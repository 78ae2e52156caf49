from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field

from schemas.bookmark import BookmarkRow

BOOKMARK_CHANGED = "BOOKMARK_CHANGED"


class ChangeAction(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class FeedEventType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    @property
    def action(self) -> ChangeAction:
        return ChangeAction(self.value.lower())


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """row-level change pushed by the change feed after commit."""

    table: str
    event_type: FeedEventType
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    @property
    def row(self) -> dict[str, Any]:
        """the row that identifies the change: new for insert/update, old for delete."""
        if self.event_type is FeedEventType.DELETE:
            return self.old or {}
        return self.new or {}


# bookmark changes as the reducer sees them, independent of the transport


@dataclass(frozen=True, slots=True)
class Insert:
    bookmark: BookmarkRow


@dataclass(frozen=True, slots=True)
class Update:
    bookmark: BookmarkRow


@dataclass(frozen=True, slots=True)
class Delete:
    bookmark_id: str


type BookmarkChange = Insert | Update | Delete


def make_change(
    action: ChangeAction | str,
    bookmark: BookmarkRow | None = None,
    bookmark_id: str | None = None,
) -> BookmarkChange | None:
    """None when the arguments do not describe a usable change."""
    try:
        action = ChangeAction(action)
    except ValueError:
        return None

    match action:
        case ChangeAction.INSERT if bookmark is not None:
            return Insert(bookmark)
        case ChangeAction.UPDATE if bookmark is not None:
            return Update(bookmark)
        case ChangeAction.DELETE if bookmark_id or bookmark is not None:
            return Delete(bookmark_id or bookmark.id)  # type: ignore[union-attr]
        case _:
            return None


class BroadcastMessage(BaseModel):
    """cross-tab message; field names match what every open tab expects."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kind: Literal["BOOKMARK_CHANGED"] = BOOKMARK_CHANGED
    user_id: str = Field(alias="userId")
    action: ChangeAction
    bookmark: BookmarkRow | None = None
    bookmark_id: str | None = Field(default=None, alias="bookmarkId")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_change(self) -> BookmarkChange | None:
        return make_change(self.action, self.bookmark, self.bookmark_id)

    @classmethod
    def for_change(cls, user_id: str, change: BookmarkChange) -> Self:
        match change:
            case Insert(bookmark):
                return cls(user_id=user_id, action=ChangeAction.INSERT, bookmark=bookmark)
            case Update(bookmark):
                return cls(user_id=user_id, action=ChangeAction.UPDATE, bookmark=bookmark)
            case Delete(bookmark_id):
                return cls(user_id=user_id, action=ChangeAction.DELETE, bookmark_id=bookmark_id)

