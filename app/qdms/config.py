import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    log_level: str
    audit_log_max_limit: int
    session_lifetime_hours: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _database_url() -> str:
    url = _getenv("DATABASE_URL", "sqlite:///qdms.db")
    # Managed Postgres providers hand out the legacy scheme SQLAlchemy no longer accepts.
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_database_url(),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        audit_log_max_limit=_getenv_int("AUDIT_LOG_MAX_LIMIT", 500),
        session_lifetime_hours=_getenv_int("SESSION_LIFETIME_HOURS", 8),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "AUDIT_LOG_MAX_LIMIT": s.audit_log_max_limit,
        "SESSION_LIFETIME_HOURS": s.session_lifetime_hours,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON API only; document content travels inline
        "MAX_CONTENT_LENGTH": 5 * 1024 * 1024,
    }
