# file: app/config.py

import os
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv(override=False)


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _env_bool(name: str, default: bool = False) -> bool:
    value = _env_str(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    value = _env_str(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"{name}={value!r} is not an integer, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    value = _env_str(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"{name}={value!r} is not a number, using {default}")
        return default


@dataclass
class Settings:
    # --- Database ---
    database_url: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_host: Optional[str] = None
    db_port: str = "5432"
    db_name: Optional[str] = None

    # --- Firebase Cloud Messaging ---
    firebase_project_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_private_key_id: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_credentials_path: Optional[str] = None

    # --- Token registry ---
    token_store: str = "database"
    token_ttl_days: int = 0

    # --- Scheduler ---
    scheduler_enabled: bool = True
    scheduler_timezone: str = "Asia/Kolkata"

    # --- Panchang ---
    panchang_provider: str = "static"
    panchang_api_base: str = "https://panchang.click/api"
    panchang_api_key: Optional[str] = None
    astrology_api_base: str = "https://json.astrologyapi.com/v1"
    astrology_api_user: Optional[str] = None
    astrology_api_key: Optional[str] = None
    panchang_cache_enabled: bool = True
    festival_calendar_path: Optional[str] = None

    # --- Email (Brevo) ---
    brevo_api_key: Optional[str] = None
    brevo_api_url: str = "https://api.brevo.com/v3/smtp/email"
    email_sender_name: str = "Santvaani"
    email_sender_address: str = "noreply@santvaani.com"
    email_reply_to_name: str = "Santvaani Support"
    email_reply_to_address: str = "support@santvaani.com"
    email_broadcast_concurrency: int = 5
    email_send_delay_ms: int = 100
    email_max_retries: int = 3
    milestone_send_delay_ms: int = 1000

    # --- Misc ---
    http_timeout: float = 10.0
    admin_api_key: Optional[str] = None
    log_level: str = "INFO"
    cors_origins: list = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        origins = _env_str("CORS_ORIGINS")
        return cls(
            database_url=_env_str("DATABASE_URL"),
            db_user=_env_str("DB_USER"),
            db_password=_env_str("DB_PASSWORD"),
            db_host=_env_str("DB_HOST"),
            db_port=_env_str("DB_PORT", "5432"),
            db_name=_env_str("DB_NAME"),
            firebase_project_id=_env_str("FIREBASE_PROJECT_ID"),
            firebase_private_key=_env_str("FIREBASE_PRIVATE_KEY"),
            firebase_private_key_id=_env_str("FIREBASE_PRIVATE_KEY_ID"),
            firebase_client_email=_env_str("FIREBASE_CLIENT_EMAIL"),
            firebase_client_id=_env_str("FIREBASE_CLIENT_ID"),
            firebase_credentials_path=_env_str("FIREBASE_CREDENTIALS_PATH"),
            token_store=(_env_str("TOKEN_STORE", "database") or "database").lower(),
            token_ttl_days=_env_int("TOKEN_TTL_DAYS", 0),
            scheduler_enabled=_env_bool("SCHEDULER_ENABLED", True),
            scheduler_timezone=_env_str("SCHEDULER_TIMEZONE", "Asia/Kolkata"),
            panchang_provider=(_env_str("PANCHANG_PROVIDER", "static") or "static").lower(),
            panchang_api_base=_env_str("PANCHANG_API_BASE", "https://panchang.click/api"),
            panchang_api_key=_env_str("PANCHANG_API_KEY"),
            astrology_api_base=_env_str("ASTROLOGY_API_BASE", "https://json.astrologyapi.com/v1"),
            astrology_api_user=_env_str("ASTROLOGY_API_USER"),
            astrology_api_key=_env_str("ASTROLOGY_API_KEY"),
            panchang_cache_enabled=_env_bool("PANCHANG_CACHE_ENABLED", True),
            festival_calendar_path=_env_str("FESTIVAL_CALENDAR_PATH"),
            brevo_api_key=_env_str("BREVO_API_KEY"),
            brevo_api_url=_env_str("BREVO_API_URL", "https://api.brevo.com/v3/smtp/email"),
            email_sender_name=_env_str("EMAIL_SENDER_NAME", "Santvaani"),
            email_sender_address=_env_str("EMAIL_SENDER_ADDRESS", "noreply@santvaani.com"),
            email_reply_to_name=_env_str("EMAIL_REPLY_TO_NAME", "Santvaani Support"),
            email_reply_to_address=_env_str("EMAIL_REPLY_TO_ADDRESS", "support@santvaani.com"),
            email_broadcast_concurrency=max(1, _env_int("EMAIL_BROADCAST_CONCURRENCY", 5)),
            email_send_delay_ms=max(0, _env_int("EMAIL_SEND_DELAY_MS", 100)),
            email_max_retries=max(0, _env_int("EMAIL_MAX_RETRIES", 3)),
            milestone_send_delay_ms=max(0, _env_int("MILESTONE_SEND_DELAY_MS", 1000)),
            http_timeout=_env_float("HTTP_TIMEOUT", 10.0),
            admin_api_key=_env_str("ADMIN_API_KEY"),
            log_level=(_env_str("LOG_LEVEL", "INFO") or "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else ["*"],
        )

    @property
    def resolved_database_url(self) -> str:
        """Postgres when all DB_* vars are present, otherwise a local SQLite file."""
        if self.database_url:
            return self.database_url
        if all([self.db_user, self.db_password, self.db_host, self.db_port, self.db_name]):
            return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
        return "sqlite+aiosqlite:///./santvaani.db"


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
