from fastapi import APIRouter, HTTPException
from starlette.responses import Response

from core.dependencies import CsrfProtected, CurrentUser, DbSession, unwrap
from schemas.bookmark import TagRow
from schemas.tag import TagForm, TagPatch
from services.tag_service import TagService

router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.get("")
async def list_tags(db: DbSession, user: CurrentUser) -> list[TagRow]:
    service = TagService(db)
    return [TagRow.model_validate(tag) for tag in await service.list_tags(user.id)]


@router.post("", status_code=201)
async def create_tag(form: TagForm, db: DbSession, user: CurrentUser, _: CsrfProtected) -> TagRow:
    service = TagService(db)
    tag = unwrap(await service.create_tag(user.id, form.name, form.color))
    return TagRow.model_validate(tag)


@router.patch("/{tag_id}")
async def update_tag(
    tag_id: str, patch: TagPatch, db: DbSession, user: CurrentUser, _: CsrfProtected
) -> TagRow:
    service = TagService(db)
    tag = await service.get_tag(tag_id, user.id)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")

    tag = unwrap(await service.update_tag(tag, name=patch.name, color=patch.color))
    return TagRow.model_validate(tag)


@router.delete("/{tag_id}", status_code=204)
async def delete_tag(tag_id: str, db: DbSession, user: CurrentUser, _: CsrfProtected) -> Response:
    service = TagService(db)
    tag = await service.get_tag(tag_id, user.id)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")

    unwrap(await service.delete_tag(tag))
    return Response(status_code=204)
