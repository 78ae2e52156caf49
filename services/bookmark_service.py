from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.gateway import store_failure
from core.logging import get_logger
from core.result import Result
from models.models import Bookmark, BookmarkTag, Tag, row_to_dict
from schemas.bookmark import BookmarkWithTags
from sync.reconciler import join_bookmarks

logger = get_logger(__name__)


class BookmarkService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_bookmarks(self, user_id: str) -> Sequence[Bookmark]:
        result = await self.db.execute(
            select(Bookmark).where(Bookmark.user_id == user_id).order_by(Bookmark.created_at.desc())
        )
        return result.scalars().all()

    async def list_with_tags(self, user_id: str) -> list[BookmarkWithTags]:
        """newest first, each with its tags ordered by name."""
        bookmarks = await self.list_bookmarks(user_id)
        if not bookmarks:
            return []

        links = await self.db.execute(
            select(BookmarkTag).where(BookmarkTag.bookmark_id.in_([b.id for b in bookmarks]))
        )
        tags = await self.db.execute(select(Tag).where(Tag.user_id == user_id))

        return join_bookmarks(
            [row_to_dict(b) for b in bookmarks],
            [row_to_dict(link) for link in links.scalars().all()],
            [row_to_dict(tag) for tag in tags.scalars().all()],
        )

    async def get_bookmark(self, bookmark_id: str, user_id: str | None = None) -> Bookmark | None:
        query = select(Bookmark).where(Bookmark.id == bookmark_id)
        if user_id is not None:
            query = query.where(Bookmark.user_id == user_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create_bookmark(self, user_id: str, url: str, title: str) -> Result[Bookmark]:
        bookmark = Bookmark(user_id=user_id, url=url, title=title)
        self.db.add(bookmark)
        try:
            await self.db.commit()
            await self.db.refresh(bookmark)
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("create_bookmark", e)

        logger.info(
            "bookmark created",
            extra={"user_id": user_id, "bookmark_id": bookmark.id, "operation": "create"},
        )
        return Result.success(bookmark)

    async def update_bookmark(
        self,
        bookmark: Bookmark,
        url: str | None = None,
        title: str | None = None,
    ) -> Result[Bookmark]:
        if url is not None:
            bookmark.url = url
        if title is not None:
            bookmark.title = title

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("update_bookmark", e)
        return Result.success(bookmark)

    async def delete_bookmark(self, bookmark: Bookmark) -> Result[str]:
        bookmark_id = bookmark.id
        # cascades to tag and collection links through the orm
        await self.db.delete(bookmark)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("delete_bookmark", e)
        return Result.success(bookmark_id)

    async def add_tag(self, bookmark: Bookmark, tag_id: str) -> Result[BookmarkTag]:
        tag = await self.db.get(Tag, tag_id)
        if tag is None or tag.user_id != bookmark.user_id:
            return Result.not_found("Tag not found")

        existing = await self.db.get(BookmarkTag, (bookmark.id, tag_id))
        if existing is not None:
            return Result.success(existing)

        link = BookmarkTag(bookmark_id=bookmark.id, tag_id=tag_id)
        self.db.add(link)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("add_tag", e)
        return Result.success(link)

    async def remove_tag(self, bookmark: Bookmark, tag_id: str) -> Result[bool]:
        link = await self.db.get(BookmarkTag, (bookmark.id, tag_id))
        if link is None:
            return Result.success(False)

        await self.db.delete(link)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("remove_tag", e)
        return Result.success(True)

