from typing import Annotated

from fastapi import APIRouter, Depends

from core.dependencies import CsrfProtected, CurrentUser, unwrap
from schemas.bookmark import TitleRequest
from services.title_service import TitleService

router = APIRouter(prefix="/api", tags=["titles"])


def get_title_service() -> TitleService:
    return TitleService()


@router.post("/fetch-title")
async def fetch_title(
    form: TitleRequest,
    service: Annotated[TitleService, Depends(get_title_service)],
    _user: CurrentUser,
    _: CsrfProtected,
) -> dict[str, str]:
    result = unwrap(await service.fetch_title(form.url))
    return {"title": result.title, "source": result.source}
