from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from clipkeep.exceptions import ConfigurationError
from clipkeep.utils.log_file import LOG_MAX_BYTES


def _default_data_dir() -> Path:
    return Path.home() / ".clipkeep"


def _to_bool(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_number(name: str, raw: Optional[str], default, cast):
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


@dataclass(frozen=True)
class AppConfig:
    data_dir: Path = field(default_factory=_default_data_dir)
    poll_interval: float = 0.25
    max_poll_interval: float = 4.0
    log_max_bytes: int = LOG_MAX_BYTES
    log_level: str = "INFO"
    monitor_clipboard: bool = True

    def __post_init__(self) -> None:
        for name in ("poll_interval", "max_poll_interval"):
            if not math.isfinite(getattr(self, name)):
                raise ConfigurationError(f"{name} must be a finite number")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.max_poll_interval < self.poll_interval:
            raise ConfigurationError("max_poll_interval must not be below poll_interval")
        if self.log_max_bytes <= 0:
            raise ConfigurationError("log_max_bytes must be positive")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(f"Unknown log level {self.log_level!r}")

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_env(cls, *, env_path: Optional[Path] = None) -> "AppConfig":
        load_dotenv(env_path or find_dotenv(usecwd=True), override=False)

        data_dir_raw = os.getenv("CLIPKEEP_DATA_DIR")
        data_dir = Path(data_dir_raw).expanduser() if data_dir_raw else _default_data_dir()

        return cls(
            data_dir=data_dir,
            poll_interval=_to_number(
                "CLIPKEEP_POLL_INTERVAL", os.getenv("CLIPKEEP_POLL_INTERVAL"), 0.25, float),
            max_poll_interval=_to_number(
                "CLIPKEEP_MAX_POLL_INTERVAL", os.getenv("CLIPKEEP_MAX_POLL_INTERVAL"), 4.0, float),
            log_max_bytes=_to_number(
                "CLIPKEEP_LOG_MAX_BYTES", os.getenv("CLIPKEEP_LOG_MAX_BYTES"), LOG_MAX_BYTES, int),
            log_level=os.getenv("CLIPKEEP_LOG_LEVEL", "INFO"),
            monitor_clipboard=_to_bool(os.getenv("CLIPKEEP_MONITOR"), default=True),
        )
