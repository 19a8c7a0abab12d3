from __future__ import annotations

"""Application-level configuration.

Everything is read from the environment once, in `Settings.from_env()`, and
handed to `create_app`. Services receive the values they need through their
constructors; nothing below reads `os.environ` at request time.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional


def _env_flag(env: Mapping[str, str], name: str, default: bool = True) -> bool:
    """Read a boolean-like flag from environment.

    Accepted falsy values: "0", "false", "off", "no" (case-insensitive).
    Anything else (or unset) falls back to `default`.
    """

    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"0", "false", "off", "no"}:
        return False
    if value in {"1", "true", "on", "yes"}:
        return True
    return default


def _env_int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return max(minimum, int(raw))


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


# Application constants
API_PREFIX = "/api"
APP_NAME = "WorkHub Operations API"
APP_VERSION = "1.0.0"
EMAIL_MARKETING_PREFIX = f"{API_PREFIX}/email-marketing"


@dataclass(frozen=True)
class Settings:
    store_backend: str = "mongo"
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "workhub"
    public_base_url: str = "http://localhost:8000"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Attendance
    attendance_timezone: Optional[str] = None
    default_location_radius_m: int = 100

    # Campaign dispatch
    campaign_send_concurrency: int = 10
    mail_send_max_attempts: int = 1
    mail_retry_base_delay_seconds: float = 0.5
    mail_retry_max_delay_seconds: float = 8.0
    default_sender_name: str = "WorkHub Marketing"

    # SES mail transport
    aws_region: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    ses_from_email: Optional[str] = None

    structured_access_log: bool = True

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            store_backend=env.get("STORE_BACKEND", "mongo").strip().lower(),
            mongo_url=env.get("MONGO_URL", "mongodb://localhost:27017"),
            db_name=env.get("DB_NAME", "workhub"),
            public_base_url=env.get("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
            cors_origins=[o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip()],
            attendance_timezone=env.get("ATTENDANCE_TIMEZONE") or None,
            default_location_radius_m=_env_int(env, "DEFAULT_LOCATION_RADIUS_M", 100),
            campaign_send_concurrency=_env_int(env, "CAMPAIGN_SEND_CONCURRENCY", 10),
            mail_send_max_attempts=_env_int(env, "MAIL_SEND_MAX_ATTEMPTS", 1),
            mail_retry_base_delay_seconds=_env_float(env, "MAIL_RETRY_BASE_DELAY_SECONDS", 0.5),
            mail_retry_max_delay_seconds=_env_float(env, "MAIL_RETRY_MAX_DELAY_SECONDS", 8.0),
            default_sender_name=env.get("DEFAULT_SENDER_NAME", "WorkHub Marketing"),
            aws_region=env.get("AWS_REGION") or None,
            aws_access_key_id=env.get("AWS_ACCESS_KEY_ID") or None,
            aws_secret_access_key=env.get("AWS_SECRET_ACCESS_KEY") or None,
            ses_from_email=env.get("AWS_SES_FROM_EMAIL") or None,
            structured_access_log=_env_flag(env, "STRUCTURED_ACCESS_LOG", default=True),
        )
