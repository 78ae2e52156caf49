from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import ForeignKey, Text, UniqueConstraint, inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return uuid.uuid4().hex


# tag palette offered by the UI; any other color string is still accepted
TAG_COLORS = [
    "#3B82F6",  # blue
    "#10B981",  # green
    "#F59E0B",  # amber
    "#EF4444",  # red
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#14B8A6",  # teal
    "#F97316",  # orange
]


class Base(DeclarativeBase):
    pass  # this annoys me but is how sqlalchemy does things
    # https://docs.sqlalchemy.org/en/20/orm/mapping_api.html#sqlalchemy.orm.DeclarativeBase


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(Text, unique=True, index=True)
    email: Mapped[str] = mapped_column(Text, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)


class Bookmark(Base):
    __tablename__ = "bookmarks"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    url: Mapped[str] = mapped_column(Text)
    title: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, index=True)

    # orm-level cascades so association deletes show up on the change feed
    tag_links: Mapped[list[BookmarkTag]] = relationship("BookmarkTag", cascade="all")
    collection_links: Mapped[list[CollectionBookmark]] = relationship(
        "CollectionBookmark", cascade="all"
    )


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(Text)
    color: Mapped[str] = mapped_column(Text, default=TAG_COLORS[0])
    created_at: Mapped[datetime] = mapped_column(default=utc_now)

    bookmark_links: Mapped[list[BookmarkTag]] = relationship("BookmarkTag", cascade="all")


class BookmarkTag(Base):
    __tablename__ = "bookmark_tags"

    bookmark_id: Mapped[str] = mapped_column(
        ForeignKey("bookmarks.id", ondelete="CASCADE"),
        primary_key=True,
    )
    tag_id: Mapped[str] = mapped_column(
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )


class SharedCollection(Base):
    __tablename__ = "shared_collections"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(Text)
    slug: Mapped[str] = mapped_column(Text, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    is_public: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)

    members: Mapped[list[CollectionBookmark]] = relationship(
        "CollectionBookmark", cascade="all"
    )


class CollectionBookmark(Base):
    __tablename__ = "collection_bookmarks"
    __table_args__ = (
        UniqueConstraint("collection_id", "bookmark_id", name="uq_collection_bookmark"),
    )

    # surrogate key keeps insertion order available as the sort_order tie-breaker
    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    collection_id: Mapped[str] = mapped_column(
        ForeignKey("shared_collections.id", ondelete="CASCADE"), index=True
    )
    bookmark_id: Mapped[str] = mapped_column(
        ForeignKey("bookmarks.id", ondelete="CASCADE"), index=True
    )
    sort_order: Mapped[int] = mapped_column(default=0)


# tables reachable through the gateway and published on the change feed
TABLES: dict[str, type[Base]] = {
    "users": User,
    "bookmarks": Bookmark,
    "tags": Tag,
    "bookmark_tags": BookmarkTag,
    "shared_collections": SharedCollection,
    "collection_bookmarks": CollectionBookmark,
}


def row_to_dict(obj: Base) -> dict[str, Any]:
    """plain column dict for an orm instance, the row shape used on the wire."""
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}
