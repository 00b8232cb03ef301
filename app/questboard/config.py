import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    csrf_enabled: bool
    check_in_page_size: int
    trust_client_breakdown: bool

    admin_email: str
    admin_password: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_bool(name: str, default: bool) -> bool:
    raw = _getenv(name)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///questboard.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        csrf_enabled=_getenv_bool("CSRF_ENABLED", True),
        check_in_page_size=max(1, min(_getenv_int("CHECK_IN_PAGE_SIZE", 10), 100)),
        trust_client_breakdown=_getenv_bool("KEEP_TRUST_CLIENT_BREAKDOWN", False),
        admin_email=_getenv("ADMIN_EMAIL", "admin@questboard.local").lower(),
        admin_password=os.environ.get("ADMIN_PASSWORD") or "change-me",
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "CSRF_ENABLED": s.csrf_enabled,
        "CHECK_IN_PAGE_SIZE": s.check_in_page_size,
        "KEEP_TRUST_CLIENT_BREAKDOWN": s.trust_client_breakdown,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON bodies only; uploads are not accepted
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
