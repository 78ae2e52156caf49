from typing import Annotated

from fastapi import APIRouter, HTTPException, Query
from starlette.responses import Response

from config import settings
from core.dependencies import CsrfProtected, CurrentUser, DbSession, Hub, unwrap
from core.search import filter_bookmarks
from models.models import Bookmark
from schemas.bookmark import BookmarkForm, BookmarkPatch, BookmarkRow, BookmarkWithTags
from services.bookmark_service import BookmarkService
from sync.events import BookmarkChange, BroadcastMessage, Delete, Insert, Update
from sync.relay import BroadcastHub, open_relay

router = APIRouter(prefix="/api/bookmarks", tags=["bookmarks"])


def announce(hub: BroadcastHub | None, user_id: str, change: BookmarkChange) -> None:
    """tell every open tab right away; the change feed follows on its own."""
    relay = open_relay(hub, settings.BROADCAST_CHANNEL)
    try:
        relay.publish(BroadcastMessage.for_change(user_id, change).to_wire())
    finally:
        relay.close()


async def _owned_bookmark(service: BookmarkService, bookmark_id: str, user_id: str) -> Bookmark:
    bookmark = await service.get_bookmark(bookmark_id, user_id)
    if not bookmark:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return bookmark


@router.get("")
async def list_bookmarks(
    db: DbSession,
    user: CurrentUser,
    q: str = "",
    tag: Annotated[list[str] | None, Query()] = None,
) -> list[BookmarkWithTags]:
    service = BookmarkService(db)
    entries = await service.list_with_tags(user.id)
    return filter_bookmarks(entries, q, tag or ())


@router.post("", status_code=201)
async def create_bookmark(
    form: BookmarkForm, db: DbSession, user: CurrentUser, hub: Hub, _: CsrfProtected
) -> BookmarkRow:
    service = BookmarkService(db)
    bookmark = unwrap(await service.create_bookmark(user.id, form.url, form.title))

    row = BookmarkRow.model_validate(bookmark)
    announce(hub, user.id, Insert(row))
    return row


@router.patch("/{bookmark_id}")
async def update_bookmark(
    bookmark_id: str,
    patch: BookmarkPatch,
    db: DbSession,
    user: CurrentUser,
    hub: Hub,
    _: CsrfProtected,
) -> BookmarkRow:
    service = BookmarkService(db)
    bookmark = await _owned_bookmark(service, bookmark_id, user.id)
    bookmark = unwrap(await service.update_bookmark(bookmark, url=patch.url, title=patch.title))

    row = BookmarkRow.model_validate(bookmark)
    announce(hub, user.id, Update(row))
    return row


@router.delete("/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: str, db: DbSession, user: CurrentUser, hub: Hub, _: CsrfProtected
) -> Response:
    service = BookmarkService(db)
    bookmark = await _owned_bookmark(service, bookmark_id, user.id)
    deleted_id = unwrap(await service.delete_bookmark(bookmark))

    announce(hub, user.id, Delete(deleted_id))
    return Response(status_code=204)


@router.put("/{bookmark_id}/tags/{tag_id}", status_code=204)
async def add_tag(
    bookmark_id: str, tag_id: str, db: DbSession, user: CurrentUser, _: CsrfProtected
) -> Response:
    service = BookmarkService(db)
    bookmark = await _owned_bookmark(service, bookmark_id, user.id)
    unwrap(await service.add_tag(bookmark, tag_id))
    return Response(status_code=204)


@router.delete("/{bookmark_id}/tags/{tag_id}", status_code=204)
async def remove_tag(
    bookmark_id: str, tag_id: str, db: DbSession, user: CurrentUser, _: CsrfProtected
) -> Response:
    service = BookmarkService(db)
    bookmark = await _owned_bookmark(service, bookmark_id, user.id)
    unwrap(await service.remove_tag(bookmark, tag_id))
    return Response(status_code=204)
