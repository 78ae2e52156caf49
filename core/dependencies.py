from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from fastapi.templating import Jinja2Templates
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from config import settings
from core.auth import verify_session_token
from core.csrf import validate_csrf
from core.database import async_session
from core.gateway import StoreGateway
from core.result import Result
from models.models import User
from sync.feed import ChangeFeed
from sync.relay import BroadcastHub


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    async with async_session() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def load_user(conn: HTTPConnection, db: AsyncSession) -> User | None:
    """cookie to user; shared by http routes and the websocket handshake."""
    from services.auth_service import AuthService

    token = conn.cookies.get(settings.COOKIE_NAME)
    if not token:
        return None

    user_id = verify_session_token(token)
    if not user_id:
        return None

    auth_service = AuthService(db)
    return await auth_service.get_user_by_id(user_id)


async def get_current_user(
    request: Request,
    db: DbSession,
) -> User:
    user = await load_user(request, db)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def validate_csrf_token(request: Request) -> None:
    await validate_csrf(request)


CsrfProtected = Annotated[None, Depends(validate_csrf_token)]


def get_client_ip(request: Request) -> str:
    if settings.TRUST_PROXY:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # format: "client, proxy1, proxy2" - first is original
            return forwarded_for.split(",")[0].strip()
    return get_remote_address(request)


def get_limiter() -> Limiter:
    return Limiter(key_func=get_client_ip, enabled=settings.ENVIRONMENT != "test")


def get_templates(request: Request) -> Jinja2Templates:
    templates: Jinja2Templates = request.app.state.templates
    return templates


Templates = Annotated[Jinja2Templates, Depends(get_templates)]


# process-wide sync plumbing, created in the app lifespan


def get_feed(conn: HTTPConnection) -> ChangeFeed:
    feed: ChangeFeed = conn.app.state.feed
    return feed


def get_hub(conn: HTTPConnection) -> BroadcastHub | None:
    return getattr(conn.app.state, "hub", None)


def get_gateway(conn: HTTPConnection) -> StoreGateway:
    gateway: StoreGateway = conn.app.state.gateway
    return gateway


Feed = Annotated[ChangeFeed, Depends(get_feed)]
Hub = Annotated[BroadcastHub | None, Depends(get_hub)]
Gateway = Annotated[StoreGateway, Depends(get_gateway)]


def unwrap[T](result: Result[T]) -> T:
    """service result to value, or the matching http error."""
    if result.ok:
        assert result.value is not None
        return result.value
    status = result.error_kind.http_status if result.error_kind else 400
    raise HTTPException(status_code=status, detail=result.error)
