from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

from .errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - JWT_SECRET: secret used to sign identity tokens (required)
    - AES_SECRET_KEY: 64-character hex string (32 bytes) for description encryption (required)
    - APP_ENV: 'development' (default) or 'production'; production enables secure cookies
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/taskvault.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - BCRYPT_ROUNDS: bcrypt cost factor (default 12)
    - LOG_LEVEL: root log level (default INFO)
    """

    jwt_secret: str
    aes_secret_key: str
    environment: str = "development"
    persistence_backend: str = "memory"
    sqlite_db_path: str = "./data/taskvault.db"
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    bcrypt_rounds: int = 12
    log_level: str = "INFO"

    @property
    def secure_cookies(self) -> bool:
        return self.environment == "production"


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _require_env(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} environment variable is required")
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    rounds = _parse_int(_get_env("BCRYPT_ROUNDS", "12"), 12)
    if not 4 <= rounds <= 31:
        raise ConfigurationError("BCRYPT_ROUNDS must be between 4 and 31")

    return Settings(
        jwt_secret=_require_env("JWT_SECRET"),
        aes_secret_key=_require_env("AES_SECRET_KEY"),
        environment=_get_env("APP_ENV", "development").strip().lower(),
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/taskvault.db").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        bcrypt_rounds=rounds,
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )
