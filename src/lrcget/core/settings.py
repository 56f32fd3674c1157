# core/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from lrcget.core.errors import ValidationError

DEFAULT_DATA_DIR = "~/.lrcget"
DB_FILENAME = "db.sqlite3"

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class Settings:
    """
    Process-level settings (not stored in the database).

    User-facing preferences live in the `config_data` table instead,
    see db.models.Config.
    """
    data_dir: str = DEFAULT_DATA_DIR
    max_workers: int = 4
    timeout: float = 10.0
    rate_limit: float = 0.2
    log_level: str = "info"
    debug_schema: bool = False

    @property
    def data_path(self) -> Path:
        return Path(os.path.expanduser(self.data_dir))

    @property
    def db_path(self) -> str:
        return str(self.data_path / DB_FILENAME)

    @property
    def covers_dir(self) -> str:
        return str(self.data_path / "covers")

    def validate(self) -> "Settings":
        if not self.data_dir:
            raise ValidationError("data_dir is required")
        if not 1 <= self.max_workers <= 100:
            raise ValidationError("max_workers must be between 1 and 100")
        if self.timeout <= 0:
            raise ValidationError("timeout must be positive")
        if self.rate_limit < 0:
            raise ValidationError("rate_limit must be non-negative")
        if self.log_level not in LOG_LEVELS:
            raise ValidationError(f"log_level must be one of: {', '.join(LOG_LEVELS)}")
        return self

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        defaults = cls()

        return cls(
            data_dir=env.get("LRCGET_DATA_DIR") or defaults.data_dir,
            max_workers=_int(env, "LRCGET_MAX_WORKERS", defaults.max_workers),
            timeout=_float(env, "LRCGET_TIMEOUT", defaults.timeout),
            rate_limit=_float(env, "LRCGET_RATE_LIMIT", defaults.rate_limit),
            log_level=(env.get("LRCGET_LOG_LEVEL") or defaults.log_level).lower(),
            debug_schema=env.get("LRCGET_DEBUG_SCHEMA") == "1",
        ).validate()


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{key} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{key} must be a number, got {raw!r}") from None
