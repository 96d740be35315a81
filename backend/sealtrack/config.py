"""Process-wide settings for the SealTrack API."""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field
from typing import Mapping

# purpose: build one immutable settings object at startup and hand it to every
#   component instead of reading the environment ad hoc
# status: active

_PRODUCTION = "production"


def _parse_bool(value: str | None, fallback: bool) -> bool:
    if value is None:
        return fallback
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return fallback


def _parse_csv(value: str | None, fallback: list[str]) -> list[str]:
    if not value:
        return fallback
    parsed = [item.strip() for item in value.split(",") if item.strip()]
    return parsed or fallback


def _parse_int(value: str | None, fallback: int, *, minimum: int = 0) -> int:
    if not value:
        return fallback
    try:
        return max(minimum, int(value))
    except ValueError:
        return fallback


def _parse_float(value: str | None, fallback: float) -> float:
    if not value:
        return fallback
    try:
        return float(value)
    except ValueError:
        return fallback


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    secret_key: str = ""
    token_ttl_seconds: int = 43200
    upload_dir: str = "uploaded_files"
    window_timezone: str = "UTC"
    default_expected_travel_minutes: int = 30
    red_flag_multiplier: float = 1.5
    task_reset_hours: int = 4
    allow_task_reset: bool = False
    device_binding_bypass: bool = False
    audit_max_limit: int = 1000
    cors_origins: tuple[str, ...] = field(
        default=("http://localhost:3000", "http://127.0.0.1:3000")
    )
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == _PRODUCTION

    @property
    def bypass_device_binding(self) -> bool:
        """True only for an explicitly flagged non-production process."""

        return self.device_binding_bypass and not self.is_production


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Read ``SEALTRACK_*`` variables and validate their combination."""

    source = os.environ if env is None else env
    environment = (source.get("SEALTRACK_ENV") or "development").strip().lower()
    secret_key = (source.get("SEALTRACK_SECRET_KEY") or source.get("SECRET_KEY") or "").strip()
    bypass = _parse_bool(source.get("SEALTRACK_DEVICE_BINDING_BYPASS"), False)

    if environment == _PRODUCTION:
        if bypass:
            raise ValueError("SEALTRACK_DEVICE_BINDING_BYPASS cannot be enabled in production")
        if not secret_key:
            raise ValueError("SEALTRACK_SECRET_KEY is required in production")
    if not secret_key:
        secret_key = secrets.token_urlsafe(32)

    return Settings(
        environment=environment,
        secret_key=secret_key,
        token_ttl_seconds=_parse_int(source.get("SEALTRACK_TOKEN_TTL_SECONDS"), 43200, minimum=60),
        upload_dir=source.get("UPLOAD_DIR", "uploaded_files"),
        window_timezone=(source.get("SEALTRACK_WINDOW_TIMEZONE") or "UTC").strip(),
        default_expected_travel_minutes=_parse_int(
            source.get("SEALTRACK_EXPECTED_TRAVEL_MINUTES"), 30, minimum=1
        ),
        red_flag_multiplier=_parse_float(source.get("SEALTRACK_RED_FLAG_MULTIPLIER"), 1.5),
        task_reset_hours=_parse_int(source.get("SEALTRACK_TASK_RESET_HOURS"), 4, minimum=1),
        allow_task_reset=_parse_bool(source.get("SEALTRACK_ALLOW_TASK_RESET"), False),
        device_binding_bypass=bypass,
        audit_max_limit=_parse_int(source.get("SEALTRACK_AUDIT_MAX_LIMIT"), 1000, minimum=1),
        cors_origins=tuple(
            _parse_csv(
                source.get("SEALTRACK_CORS_ORIGINS"),
                ["http://localhost:3000", "http://127.0.0.1:3000"],
            )
        ),
        log_level=(source.get("SEALTRACK_LOG_LEVEL") or "INFO").upper(),
        log_json=_parse_bool(source.get("SEALTRACK_LOG_JSON"), environment == _PRODUCTION),
    )
