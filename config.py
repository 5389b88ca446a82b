from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

VAULT_BACKENDS = {"sql", "file", "memory"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    database_url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///data/housing.db"))
    vault_backend: str = field(default_factory=lambda: os.getenv("VAULT_BACKEND", "sql").strip().lower())
    vault_data_dir: str = field(default_factory=lambda: os.getenv("VAULT_DATA_DIR", "data"))
    vault_storage_key: str = field(default_factory=lambda: os.getenv("VAULT_STORAGE_KEY", "student_housing_vault"))
    vault_max_capacity: int = field(default_factory=lambda: _env_int("VAULT_MAX_CAPACITY", 50))
    admin_session_hours: int = field(default_factory=lambda: _env_int("ADMIN_SESSION_HOURS", 8))
    total_beds: int = field(default_factory=lambda: _env_int("TOTAL_BEDS", 1000))

    def __post_init__(self) -> None:
        if self.vault_backend not in VAULT_BACKENDS:
            raise RuntimeError(
                f"VAULT_BACKEND must be one of {sorted(VAULT_BACKENDS)}, got {self.vault_backend!r}."
            )
        if self.vault_max_capacity < 1:
            raise RuntimeError("VAULT_MAX_CAPACITY must be a positive integer.")


def get_settings() -> Settings:
    return Settings()
