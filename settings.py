from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_HOST_ENV = "HOST"
_PORT_ENV = "PORT"
_THRESHOLD_ENV = "LEVEL_THRESHOLD"
_COOLDOWN_ENV = "NOTIFY_COOLDOWN_SECONDS"
_DB_PATH_ENV = "READINGS_DB_PATH"
_SMS_API_KEY_ENV = "SMS_API_KEY"
_SMS_PHONE_ENV = "SMS_PHONE_NUMBER"
_SMS_FROM_ENV = "SMS_FROM"
_SMS_URL_ENV = "SMS_API_URL"
_SMS_TIMEOUT_ENV = "SMS_TIMEOUT_SECONDS"
_WORKER_COUNT_ENV = "NOTIFIER_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_SMS_API_URL = "https://api.smsapi.pl/sms.do"


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    level_threshold: Optional[float]
    notify_cooldown_seconds: float
    db_path: str
    sms_api_key: Optional[str]
    sms_phone_number: Optional[str]
    sms_from: str
    sms_api_url: str
    sms_timeout_seconds: float
    notifier_workers: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_worker_count(default: int) -> int:
    value = os.getenv(_WORKER_COUNT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_port(default: int) -> int:
    value = os.getenv(_PORT_ENV)
    if value is None:
        return default
    # Accepts both ":8080" and "8080".
    candidate = value.strip().lstrip(":")
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if 0 < parsed < 65536 else default


def _read_threshold() -> Optional[float]:
    value = os.getenv(_THRESHOLD_ENV)
    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    try:
        parsed = float(candidate)
    except ValueError:
        parsed = math.nan
    if not math.isfinite(parsed):
        logger.warning(
            "Invalid LEVEL_THRESHOLD value, alerting disabled",
            extra={"invalid_value": candidate},
        )
        return None
    return parsed


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    load_dotenv()
    return Settings(
        host=_read_str_env(_HOST_ENV, "0.0.0.0"),
        port=_read_port(8080),
        level_threshold=_read_threshold(),
        notify_cooldown_seconds=_read_positive_float(_COOLDOWN_ENV, 3600.0),
        db_path=_read_str_env(_DB_PATH_ENV, "./data.db"),
        sms_api_key=_read_optional_env(_SMS_API_KEY_ENV, None),
        sms_phone_number=_read_optional_env(_SMS_PHONE_ENV, None),
        sms_from=_read_str_env(_SMS_FROM_ENV, "Test"),
        sms_api_url=_read_str_env(_SMS_URL_ENV, DEFAULT_SMS_API_URL),
        sms_timeout_seconds=_read_positive_float(_SMS_TIMEOUT_ENV, 10.0),
        notifier_workers=_read_worker_count(2),
        log_level=_read_log_level("INFO"),
    )
