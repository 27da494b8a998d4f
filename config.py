"""Application configuration loaded from the environment / .env file"""
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

STORAGE_BACKENDS = ("memory", "sqlite", "mongodb")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppConfig:
    """Settings for one process. Built once at startup and passed down explicitly."""
    host: str = "0.0.0.0"
    port: int = 8000
    storage_backend: str = "sqlite"
    sqlite_path: str = "expense-tracker.db"
    mongodb_uri: Optional[str] = None
    db_name: str = "expenses_api"
    log_level: str = "INFO"
    rate_limit: str = "60/minute"
    rate_limit_enabled: bool = True
    max_body_size: int = 64 * 1024
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """
    Load configuration from `env_file` (or a .env found in the current
    directory and its parents) plus the process environment.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    storage_backend = os.getenv("STORAGE_BACKEND", "sqlite").strip().lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise ValueError(f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, got {storage_backend!r}")

    origins = os.getenv("CORS_ORIGINS", "*")
    return AppConfig(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8000),
        storage_backend=storage_backend,
        sqlite_path=os.getenv("SQLITE_PATH", "expense-tracker.db"),
        mongodb_uri=os.getenv("MONGODB_URI") or None,
        db_name=os.getenv("DB_NAME", "expenses_api"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        rate_limit=os.getenv("RATE_LIMIT", "60/minute"),
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
        max_body_size=_env_int("MAX_BODY_SIZE", 64 * 1024),
        cors_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
    )
