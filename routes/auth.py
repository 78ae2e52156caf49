from fastapi import APIRouter, HTTPException, Request
from starlette.responses import Response

from config import settings
from core.auth import clear_session_cookie, set_session_cookie
from core.csrf import get_csrf_token
from core.dependencies import CsrfProtected, CurrentUser, DbSession, get_limiter, unwrap
from core.logging import get_logger
from schemas.auth import LoginForm, RegisterForm, UserOut
from services.auth_service import AuthService

router = APIRouter(prefix="/api", tags=["auth"])
limiter = get_limiter()
logger = get_logger(__name__)


@router.get("/csrf")
async def csrf_token(request: Request) -> dict[str, str]:
    return {"csrf_token": get_csrf_token(request)}


@router.post("/auth/register", status_code=201)
@limiter.limit(settings.RATE_LIMIT_REGISTER)
async def register(
    request: Request,
    response: Response,
    form: RegisterForm,
    db: DbSession,
    _: CsrfProtected,
) -> UserOut:
    if errors := form.validate_passwords_match():
        raise HTTPException(status_code=422, detail=errors[0])

    auth_service = AuthService(db)
    user = unwrap(await auth_service.register_user(form.username, form.email, form.password))

    set_session_cookie(response, user.id)
    logger.info("user registered", extra={"user_id": user.id, "operation": "register"})
    return UserOut.model_validate(user)


@router.post("/auth/login")
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(
    request: Request,
    response: Response,
    form: LoginForm,
    db: DbSession,
    _: CsrfProtected,
) -> UserOut:
    auth_service = AuthService(db)
    user = await auth_service.authenticate_user(form.username, form.password)

    if not user:
        raise HTTPException(status_code=401, detail="Invalid username or password")

    set_session_cookie(response, user.id)
    return UserOut.model_validate(user)


@router.post("/auth/logout", status_code=204)
async def logout(_: CsrfProtected) -> Response:
    response = Response(status_code=204)
    clear_session_cookie(response)
    return response


@router.get("/auth/me")
async def me(user: CurrentUser) -> UserOut:
    return UserOut.model_validate(user)
