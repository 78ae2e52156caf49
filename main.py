from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config import settings
from core.csrf import get_csrf_token
from core.database import async_session, engine
from core.dependencies import get_limiter
from core.gateway import StoreGateway
from core.logging import get_logger, setup_logging
from core.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from models.models import Base
from routes import auth, bookmarks, collections, realtime, tags, titles
from routes.collections import favicon_url
from schemas import extract_validation_errors
from services.title_service import hostname_title
from sync.feed import ChangeFeed, capture_changes
from sync.relay import BroadcastHub

settings.validate()
setup_logging(settings.LOG_FILE, settings.LOG_LEVEL, settings.JSON_LOGS)

BASE_DIR = Path(__file__).parent
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    feed = ChangeFeed()
    detach = capture_changes(async_session, feed)
    hub = BroadcastHub()
    app.state.feed = feed
    app.state.hub = hub
    app.state.gateway = StoreGateway(async_session)
    logger.info("change feed and broadcast hub ready", extra={"channel": settings.BROADCAST_CHANNEL})
    try:
        yield
    finally:
        hub.close()
        detach()
        await engine.dispose()


app = FastAPI(title="smartmarks", lifespan=lifespan)

# template context processors, only the public shared page renders html
templates = Jinja2Templates(directory=BASE_DIR / "templates")
templates.context_processors.append(lambda request: {"csrf_token": get_csrf_token(request)})
templates.context_processors.append(lambda request: {"now": datetime.now(UTC)})
templates.context_processors.append(lambda request: {"site_name": settings.SITE_NAME})
templates.env.filters["hostname"] = hostname_title
templates.env.filters["favicon_url"] = favicon_url
app.state.templates = templates

limiter = get_limiter()
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = extract_validation_errors(exc)
    return JSONResponse(status_code=422, content={"detail": errors[0], "errors": errors})


# middleware order: first added = last executed
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)

if settings.TRUST_PROXY:
    from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(auth.router)
app.include_router(bookmarks.router)
app.include_router(tags.router)
app.include_router(collections.router)
app.include_router(titles.router)
app.include_router(realtime.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True, reload_excludes=["*.log"])
