from urllib.parse import urlparse

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse
from starlette.responses import Response

from core.dependencies import CsrfProtected, CurrentUser, DbSession, Templates, unwrap
from core.result import ErrorKind
from schemas.bookmark import BookmarkRow
from schemas.collection import CollectionForm, CollectionRow, SharedCollectionView
from services.collection_service import CollectionService

router = APIRouter(tags=["collections"])


def favicon_url(url: str) -> str | None:
    hostname = urlparse(url).hostname
    if not hostname:
        return None
    return f"https://www.google.com/s2/favicons?domain={hostname}&sz=32"


@router.get("/api/collections")
async def list_collections(db: DbSession, user: CurrentUser) -> list[CollectionRow]:
    service = CollectionService(db)
    return [CollectionRow.model_validate(c) for c in await service.list_collections(user.id)]


@router.post("/api/collections", status_code=201)
async def create_collection(
    form: CollectionForm, db: DbSession, user: CurrentUser, _: CsrfProtected
) -> CollectionRow:
    service = CollectionService(db)
    collection = unwrap(
        await service.create_collection(user.id, form.name, form.bookmark_ids, form.description)
    )
    return CollectionRow.model_validate(collection)


@router.delete("/api/collections/{collection_id}", status_code=204)
async def delete_collection(
    collection_id: str, db: DbSession, user: CurrentUser, _: CsrfProtected
) -> Response:
    service = CollectionService(db)
    collection = await service.get_collection(collection_id, user.id)
    if not collection:
        raise HTTPException(status_code=404, detail="Collection not found")

    unwrap(await service.delete_collection(collection))
    return Response(status_code=204)


@router.get("/api/shared/{slug}")
async def shared_collection(slug: str, db: DbSession) -> SharedCollectionView:
    service = CollectionService(db)
    collection, bookmarks = unwrap(await service.get_public_collection(slug))
    return SharedCollectionView(
        collection=CollectionRow.model_validate(collection),
        bookmarks=[BookmarkRow.model_validate(b) for b in bookmarks],
    )


@router.get("/shared/{slug}", response_class=HTMLResponse)
async def shared_collection_page(
    request: Request, slug: str, db: DbSession, templates: Templates
) -> HTMLResponse:
    service = CollectionService(db)
    result = await service.get_public_collection(slug)

    if result.error_kind is ErrorKind.NOT_FOUND:
        return templates.TemplateResponse(
            request, "shared.html", {"collection": None, "bookmarks": []}, status_code=404
        )
    collection, bookmarks = unwrap(result)

    return templates.TemplateResponse(
        request, "shared.html", {"collection": collection, "bookmarks": bookmarks}
    )
