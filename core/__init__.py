from core.auth import (
    clear_session_cookie,
    create_session_token,
    hash_password,
    set_session_cookie,
    verify_password,
    verify_session_token,
)
from core.csrf import generate_csrf_token, get_csrf_token, validate_csrf, verify_csrf_token
from core.database import async_session, engine, make_session_factory
from core.dependencies import (
    CsrfProtected,
    CurrentUser,
    DbSession,
    Feed,
    Gateway,
    Hub,
    Templates,
    get_client_ip,
    get_current_user,
    get_db_session,
    get_feed,
    get_gateway,
    get_hub,
    get_limiter,
    get_templates,
    load_user,
    unwrap,
)
from core.gateway import StoreError, StoreGateway, store_failure
from core.logging import get_logger, request_id_var, setup_logging
from core.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from core.result import ErrorKind, Result
from core.search import filter_bookmarks, normalize_query

__all__ = [
    # auth
    "hash_password",
    "verify_password",
    "create_session_token",
    "verify_session_token",
    "set_session_cookie",
    "clear_session_cookie",
    # csrf
    "generate_csrf_token",
    "verify_csrf_token",
    "validate_csrf",
    "get_csrf_token",
    # database
    "engine",
    "async_session",
    "make_session_factory",
    # dependencies
    "get_db_session",
    "DbSession",
    "load_user",
    "get_current_user",
    "CurrentUser",
    "CsrfProtected",
    "get_client_ip",
    "get_limiter",
    "get_templates",
    "Templates",
    "get_feed",
    "get_hub",
    "get_gateway",
    "Feed",
    "Hub",
    "Gateway",
    "unwrap",
    # gateway
    "StoreGateway",
    "StoreError",
    "store_failure",
    # logging
    "setup_logging",
    "get_logger",
    "request_id_var",
    # middleware
    "RequestIDMiddleware",
    "SecurityHeadersMiddleware",
    # result
    "Result",
    # errors
    "ErrorKind",
    # search
    "filter_bookmarks",
    "normalize_query",
]
