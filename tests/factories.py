"""plain row builders shared by the pure-logic tests."""

from datetime import UTC, datetime, timedelta
from typing import Any

from schemas.bookmark import BookmarkRow, BookmarkWithTags, TagRow

EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


def bookmark_row(
    id: str, title: str = "", url: str = "", user_id: str = "u1", minutes: int = 0
) -> dict[str, Any]:
    return {
        "id": id,
        "user_id": user_id,
        "url": url or f"https://example.com/{id}",
        "title": title or f"Bookmark {id}",
        "created_at": EPOCH + timedelta(minutes=minutes),
    }


def tag_row(id: str, name: str, user_id: str = "u1", color: str = "#3B82F6") -> dict[str, Any]:
    return {"id": id, "user_id": user_id, "name": name, "color": color, "created_at": EPOCH}


def entry(id: str, title: str = "", url: str = "", tags: tuple[TagRow, ...] = ()) -> BookmarkWithTags:
    return BookmarkWithTags.from_row(BookmarkRow.model_validate(bookmark_row(id, title, url)), tags)


def tag(id: str, name: str) -> TagRow:
    return TagRow.model_validate(tag_row(id, name))
