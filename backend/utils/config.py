"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str = "Room Routine Arbitration Service"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    arbitration_log_level: str = ""
    database_path: Path = Path("data/routine.db")
    persistence_enabled: bool = True
    seed_demo_data: bool = True
    conflict_policy: str = "permissive"
    all_programs_id: str = "__ALL_PROGRAMS__"
    not_available_text: str = "N/A"
    campus_timezone: str = ""


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests call ``cache_clear`` to reload."""
    defaults = Settings()
    return Settings(
        app_name=os.getenv("ROUTINE_APP_NAME", defaults.app_name),
        app_version=os.getenv("ROUTINE_APP_VERSION", defaults.app_version),
        log_level=os.getenv("ROUTINE_LOG_LEVEL", defaults.log_level),
        arbitration_log_level=os.getenv("ROUTINE_ARBITRATION_LOG_LEVEL", defaults.arbitration_log_level).strip(),
        database_path=Path(os.getenv("ROUTINE_DATABASE_PATH", str(defaults.database_path))),
        persistence_enabled=_env_bool("ROUTINE_PERSISTENCE_ENABLED", defaults.persistence_enabled),
        seed_demo_data=_env_bool("ROUTINE_SEED_DEMO_DATA", defaults.seed_demo_data),
        conflict_policy=os.getenv("ROUTINE_CONFLICT_POLICY", defaults.conflict_policy).strip().lower(),
        campus_timezone=os.getenv("ROUTINE_CAMPUS_TIMEZONE", defaults.campus_timezone).strip(),
    )
