from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.gateway import store_failure
from core.result import Result
from models.models import TAG_COLORS, Tag


class TagService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_tags(self, user_id: str) -> Sequence[Tag]:
        result = await self.db.execute(
            select(Tag).where(Tag.user_id == user_id).order_by(Tag.name.asc())
        )
        return result.scalars().all()

    async def get_tag(self, tag_id: str, user_id: str) -> Tag | None:
        result = await self.db.execute(
            select(Tag).where(Tag.id == tag_id).where(Tag.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create_tag(self, user_id: str, name: str, color: str = TAG_COLORS[0]) -> Result[Tag]:
        # duplicate names are allowed, tags are told apart by id
        tag = Tag(user_id=user_id, name=name, color=color)
        self.db.add(tag)
        try:
            await self.db.commit()
            await self.db.refresh(tag)
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("create_tag", e)
        return Result.success(tag)

    async def update_tag(
        self, tag: Tag, name: str | None = None, color: str | None = None
    ) -> Result[Tag]:
        if name is not None:
            tag.name = name
        if color is not None:
            tag.color = color
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("update_tag", e)
        return Result.success(tag)

    async def delete_tag(self, tag: Tag) -> Result[str]:
        tag_id = tag.id
        await self.db.delete(tag)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            return store_failure("delete_tag", e)
        return Result.success(tag_id)
