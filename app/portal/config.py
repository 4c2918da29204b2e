import os
from dataclasses import dataclass

from app.portal.feature_flags import BETA_TESTERS_KEY, ENABLED_KEY, ROLLOUT_PERCENTAGE_KEY, TARGET_USERS_KEY

# Flag keys the browser may read through window.__ENV__.
PUBLIC_ENV_KEYS = (ENABLED_KEY, ROLLOUT_PERCENTAGE_KEY, TARGET_USERS_KEY, BETA_TESTERS_KEY)


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    login_rate_limit: int
    login_rate_window: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///portal.db"),
        login_rate_limit=_getenv_int("LOGIN_RATE_LIMIT", 5),
        login_rate_window=_getenv_int("LOGIN_RATE_WINDOW", 300),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOGIN_RATE_LIMIT": s.login_rate_limit,
        "LOGIN_RATE_WINDOW": s.login_rate_window,
        # runtime values published to the browser; process env still wins on the server
        "RUNTIME_ENV": {},
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
