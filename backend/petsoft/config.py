"""Runtime settings read from the environment (and an optional .env file)."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./petsoft.db"
    sql_echo: bool = False
    log_level: str = "INFO"

    cors_origins: List[str] = field(default_factory=list)
    base_url: str = "http://localhost:3000"

    # Session cookie
    session_secret: str = "CHANGE_ME_IN_PRODUCTION"
    session_max_age_seconds: int = 30 * 24 * 60 * 60  # 30 days
    session_https_only: bool = False

    # Minimum latency applied before every pet action
    action_delay_seconds: float = 1.0

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_price_id: str = ""


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./petsoft.db"),
        sql_echo=_env_bool("SQL_ECHO"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=["http://localhost:3000", "http://127.0.0.1:3000"] + _env_list("CORS_ORIGINS"),
        base_url=os.getenv("PETSOFT_BASE_URL", "http://localhost:3000").rstrip("/"),
        session_secret=os.getenv("SESSION_SECRET", "CHANGE_ME_IN_PRODUCTION"),
        session_max_age_seconds=int(os.getenv("SESSION_MAX_AGE_SECONDS", str(30 * 24 * 60 * 60))),
        session_https_only=_env_bool("SESSION_HTTPS_ONLY"),
        action_delay_seconds=float(os.getenv("PETSOFT_ACTION_DELAY_SECONDS", "1.0")),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
        stripe_price_id=os.getenv("STRIPE_PRICE_ID", ""),
    )
