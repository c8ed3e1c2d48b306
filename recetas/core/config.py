"""
Configuration helpers for the Receta Veterinaria backend and client.

Settings are read once from the environment so that routers/services/the
client never fetch os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os


DEFAULT_VETERINARIAN_NAME = "Dr. Camilo Vergara"
DEFAULT_VETERINARIAN_LICENSE = "17.622.685-4"


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    db_pool_size: int
    db_pool_timeout: int
    db_auto_create: bool
    veterinarian_name: str
    veterinarian_license: str
    api_base_url: str
    api_timeout: float
    local_store_file: str
    log_level: str


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _float(value: str, default: float = 0.0) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def _bool(value: str | None, default: bool = False) -> bool:
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        database_url=os.getenv("DATABASE_URL", ""),
        db_pool_size=max(1, _int(os.getenv("DB_POOL_SIZE", "20"), 20)),
        db_pool_timeout=max(1, _int(os.getenv("DB_POOL_TIMEOUT", "30"), 30)),
        db_auto_create=_bool(os.getenv("DB_AUTO_CREATE"), True),
        veterinarian_name=os.getenv("VETERINARIAN_NAME", DEFAULT_VETERINARIAN_NAME),
        veterinarian_license=os.getenv("VETERINARIAN_LICENSE", DEFAULT_VETERINARIAN_LICENSE),
        api_base_url=os.getenv("RECETAS_API_URL", "http://localhost:8000").rstrip("/"),
        api_timeout=_float(os.getenv("RECETAS_API_TIMEOUT", "10"), 10.0),
        local_store_file=os.getenv("RECETAS_LOCAL_FILE", "recetas_local.json"),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
