import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


class Settings:
    BASE_DIR: Path = Path(__file__).parent
    DATABASE_PATH: Path
    DATABASE_URL: str

    SECRET_KEY: str
    SESSION_EXPIRY_SECONDS: int = 7 * 24 * 60 * 60  # one week
    COOKIE_NAME: str = "smartmarks_session"

    CSRF_TOKEN_EXPIRY: int = 3600
    CSRF_HEADER_NAME: str = "X-CSRF-Token"
    CSRF_FORM_FIELD: str = "csrf_token"

    ENVIRONMENT: str
    IS_PRODUCTION: bool

    # only enable behind trusted reverse proxy - trusts X-Forwarded-* headers
    TRUST_PROXY: bool

    MIN_PASSWORD_LENGTH: int = 12

    # slowapi uses this format, certainly makes things easier
    RATE_LIMIT_REGISTER: str = "5/hour"
    RATE_LIMIT_LOGIN: str = "10/minute"

    SITE_NAME: str

    # every tab of the app shares this name; messages carry the user id for scoping
    BROADCAST_CHANNEL: str
    TITLE_FETCH_TIMEOUT: float

    LOG_FILE: str
    LOG_LEVEL: str
    JSON_LOGS: bool

    def __init__(self) -> None:
        self.SECRET_KEY = os.environ.get("SMARTMARKS_SECRET_KEY", "")
        self.ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
        self.IS_PRODUCTION = self.ENVIRONMENT == "production"
        self.TRUST_PROXY = _env_flag("SMARTMARKS_TRUST_PROXY")
        self.SITE_NAME = os.environ.get("SMARTMARKS_SITE_NAME", "Smart Bookmarks")
        self.BROADCAST_CHANNEL = os.environ.get("SMARTMARKS_BROADCAST_CHANNEL", "bookmarks-sync")
        self.TITLE_FETCH_TIMEOUT = float(os.environ.get("SMARTMARKS_TITLE_FETCH_TIMEOUT", "5"))
        self.LOG_FILE = os.environ.get("SMARTMARKS_LOG_FILE", "")
        self.LOG_LEVEL = os.environ.get("SMARTMARKS_LOG_LEVEL", "INFO")

        json_logs_env = os.environ.get("SMARTMARKS_JSON_LOGS", "")
        if json_logs_env:
            self.JSON_LOGS = json_logs_env.lower() in ("true", "1", "yes")
        else:
            self.JSON_LOGS = self.IS_PRODUCTION

        db_path_str = os.environ.get("SMARTMARKS_DATABASE_PATH", "")
        if db_path_str:
            self.DATABASE_PATH = Path(db_path_str)
        else:
            self.DATABASE_PATH = self.BASE_DIR / "smartmarks.db"

        self.DATABASE_URL = f"sqlite+aiosqlite:///{self.DATABASE_PATH}"

    def validate(self) -> None:
        if not self.SECRET_KEY:
            if self.IS_PRODUCTION:
                raise ValueError("SMARTMARKS_SECRET_KEY must be set in production")
            self.SECRET_KEY = "dev-secret-key-change-in-production"
            print("WARNING: using default SECRET_KEY", file=sys.stderr)


settings = Settings()
