import secrets
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.gateway import store_failure
from core.logging import get_logger
from core.result import Result
from models.models import Bookmark, CollectionBookmark, SharedCollection

logger = get_logger(__name__)

# url-safe, lowercase so links survive being typed by hand
SLUG_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789"
SLUG_LENGTH = 8
SLUG_ATTEMPTS = 5


class CollectionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def generate_slug() -> str:
        return "".join(secrets.choice(SLUG_CHARS) for _ in range(SLUG_LENGTH))

    async def _unused_slug(self) -> str | None:
        for _ in range(SLUG_ATTEMPTS):
            slug = self.generate_slug()
            existing = await self.db.execute(
                select(SharedCollection.id).where(SharedCollection.slug == slug)
            )
            if existing.scalar_one_or_none() is None:
                return slug
        return None

    async def list_collections(self, user_id: str) -> Sequence[SharedCollection]:
        result = await self.db.execute(
            select(SharedCollection)
            .where(SharedCollection.user_id == user_id)
            .order_by(SharedCollection.created_at.desc())
        )
        return result.scalars().all()

    async def get_collection(self, collection_id: str, user_id: str) -> SharedCollection | None:
        result = await self.db.execute(
            select(SharedCollection)
            .where(SharedCollection.id == collection_id)
            .where(SharedCollection.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_collection(
        self,
        user_id: str,
        name: str,
        bookmark_ids: list[str],
        description: str | None = None,
    ) -> Result[SharedCollection]:
        """collection row then its membership rows, committed together."""
        if not bookmark_ids:
            return Result.failure("select at least one bookmark to share")

        owned = await self.db.execute(
            select(Bookmark.id).where(Bookmark.user_id == user_id).where(Bookmark.id.in_(bookmark_ids))
        )
        if len(set(owned.scalars().all())) != len(set(bookmark_ids)):
            return Result.not_found("one or more selected bookmarks do not exist")

        slug = await self._unused_slug()
        if slug is None:
            return Result.conflict("could not allocate a share link, try again")

        collection = SharedCollection(
            user_id=user_id, name=name, slug=slug, description=description, is_public=True
        )
        self.db.add(collection)
        try:
            await self.db.flush()
            for index, bookmark_id in enumerate(bookmark_ids):
                self.db.add(
                    CollectionBookmark(
                        collection_id=collection.id, bookmark_id=bookmark_id, sort_order=index
                    )
                )
            await self.db.commit()
            await self.db.refresh(collection)
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("create_collection", e)

        logger.info(
            "shared collection created",
            extra={"user_id": user_id, "collection_id": collection.id, "operation": "share"},
        )
        return Result.success(collection)

    async def delete_collection(self, collection: SharedCollection) -> Result[str]:
        collection_id = collection.id
        await self.db.delete(collection)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("delete_collection", e)
        return Result.success(collection_id)

    async def get_public_collection(
        self, slug: str
    ) -> Result[tuple[SharedCollection, list[Bookmark]]]:
        """public read: ascending sort_order, ties by insertion, vanished bookmarks skipped."""
        result = await self.db.execute(
            select(SharedCollection)
            .where(SharedCollection.slug == slug)
            .where(SharedCollection.is_public.is_(True))
        )
        collection = result.scalar_one_or_none()
        if collection is None:
            return Result.not_found("Collection not found")

        members = await self.db.execute(
            select(CollectionBookmark.bookmark_id)
            .where(CollectionBookmark.collection_id == collection.id)
            .order_by(CollectionBookmark.sort_order.asc(), CollectionBookmark.seq.asc())
        )
        bookmark_ids = list(members.scalars().all())
        if not bookmark_ids:
            return Result.success((collection, []))

        bookmarks = await self.db.execute(select(Bookmark).where(Bookmark.id.in_(bookmark_ids)))
        bookmark_map = {b.id: b for b in bookmarks.scalars().all()}
        return Result.success(
            (collection, [bookmark_map[id] for id in bookmark_ids if id in bookmark_map])
        )
