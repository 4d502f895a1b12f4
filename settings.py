from __future__ import annotations

import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from errors import ConfigurationError


_ENV_FILE_ENV = "ENV_FILE"
_STORE_URI_ENV = "MONGO_URI"
_DATABASE_ENV = "DB_NAME"
_COLLECTION_ENV = "COLLECTION_NAME"
_SERIAL_PORT_ENV = "PORT_NAME"
_BAUD_RATE_ENV = "BAUD_RATE"
_READ_TIMEOUT_ENV = "SERIAL_READ_TIMEOUT"
_TIMEZONE_ENV = "TIMEZONE"
_WORKER_COUNT_ENV = "PERSIST_WORKERS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_SERIAL_PORT = "COM4"
DEFAULT_BAUD_RATE = 115200
DEFAULT_TIMEZONE = "Asia/Kolkata"


@dataclass(frozen=True)
class Settings:
    store_uri: Optional[str]
    database_name: Optional[str]
    collection_name: str
    serial_port: str
    baud_rate: int
    read_timeout: float
    timezone_name: str
    persist_workers: int
    log_level: str

    def require_store(self) -> None:
        """Fail fast when the store cannot be addressed."""
        missing = []
        if not self.store_uri:
            missing.append(_STORE_URI_ENV)
        if not self.database_name:
            missing.append(_DATABASE_ENV)
        if missing:
            raise ConfigurationError(
                f"Missing required store settings: {', '.join(missing)}"
            )

    def with_overrides(self, **values: Any) -> "Settings":
        changes = {key: value for key, value in values.items() if value is not None}
        return replace(self, **changes) if changes else self


def _load_env_file() -> None:
    # Real environment variables win over the file.
    env_file = os.getenv(_ENV_FILE_ENV, ".env")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
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
    _load_env_file()
    return Settings(
        store_uri=_read_optional_env(_STORE_URI_ENV),
        database_name=_read_optional_env(_DATABASE_ENV),
        collection_name=_read_str_env(_COLLECTION_ENV, "sensor_data"),
        serial_port=_read_str_env(_SERIAL_PORT_ENV, DEFAULT_SERIAL_PORT),
        baud_rate=_read_positive_int(_BAUD_RATE_ENV, DEFAULT_BAUD_RATE),
        read_timeout=_read_positive_float(_READ_TIMEOUT_ENV, 1.0),
        timezone_name=_read_str_env(_TIMEZONE_ENV, DEFAULT_TIMEZONE),
        persist_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        log_level=_read_log_level("INFO"),
    )
