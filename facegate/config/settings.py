"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _load_env_file(path: str = ".env") -> None:
    """Populate os.environ from the provided .env file if it exists."""

    env_path = Path(path)
    if not env_path.exists():
        return

    for line in env_path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    """Centralised project settings based on OS environment variables."""

    environment: str = "dev"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./data/facegate.db"
    store_timeout_seconds: float = 5.0

    embedding_dim: int = 128
    verify_threshold: float = 0.95
    compare_threshold: float = 0.8

    geofence_enabled: bool = False
    geofence_radius_meters: float = 15.0


def _build_settings() -> Settings:
    _load_env_file()

    return Settings(
        environment=os.getenv("ENVIRONMENT", "dev"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/facegate.db"),
        store_timeout_seconds=float(os.getenv("STORE_TIMEOUT_SECONDS", "5")),
        embedding_dim=int(os.getenv("EMBEDDING_DIM", "128")),
        verify_threshold=float(os.getenv("VERIFY_THRESHOLD", "0.95")),
        compare_threshold=float(os.getenv("COMPARE_THRESHOLD", "0.8")),
        geofence_enabled=_env_flag("GEOFENCE_ENABLED"),
        geofence_radius_meters=float(os.getenv("GEOFENCE_RADIUS_METERS", "15")),
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance to avoid re-reading configuration."""

    return _build_settings()
