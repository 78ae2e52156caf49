from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, VerifyMismatchError
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from starlette.responses import Response

from config import settings

_password_hasher = PasswordHasher()


def _serializer() -> URLSafeTimedSerializer:
    # built per call so settings.validate() can still replace an empty key
    return URLSafeTimedSerializer(settings.SECRET_KEY, salt="session")


def hash_password(password: str) -> str:
    return _password_hasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        _password_hasher.verify(hashed_password, plain_password)
        return True
    except (VerifyMismatchError, VerificationError):
        return False


def create_session_token(user_id: str) -> str:
    return _serializer().dumps({"user_id": user_id})


def verify_session_token(token: str) -> str | None:
    try:
        data: dict[str, str] = _serializer().loads(token, max_age=settings.SESSION_EXPIRY_SECONDS)
        return data.get("user_id")
    except (BadSignature, SignatureExpired):
        return None


def set_session_cookie(response: Response, user_id: str) -> None:
    token = create_session_token(user_id)
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.IS_PRODUCTION,
        samesite="lax",
        max_age=settings.SESSION_EXPIRY_SECONDS,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.COOKIE_NAME)
