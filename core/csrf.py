import secrets

from fastapi import HTTPException, Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import settings

SAFE_METHODS = ("GET", "HEAD", "OPTIONS")


def _csrf_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.SECRET_KEY, salt="csrf")


def generate_csrf_token() -> str:
    random_value = secrets.token_urlsafe(32)
    return _csrf_serializer().dumps(random_value)


def verify_csrf_token(token: str) -> bool:
    try:
        _csrf_serializer().loads(token, max_age=settings.CSRF_TOKEN_EXPIRY)
        return True
    except (BadSignature, SignatureExpired):
        return False


async def validate_csrf(request: Request) -> None:
    """json api: the token travels in a header, fetched from /api/csrf."""
    if request.method in SAFE_METHODS:
        return

    token = request.headers.get(settings.CSRF_HEADER_NAME)

    if not token or not verify_csrf_token(token):
        raise HTTPException(status_code=403, detail="CSRF validation failed")


def get_csrf_token(request: Request) -> str:
    if not hasattr(request.state, "csrf_token"):
        request.state.csrf_token = generate_csrf_token()
    token: str = request.state.csrf_token
    return token
