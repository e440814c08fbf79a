from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

BACKENDS = {"memory", "postgres"}
DEFAULT_BACKEND = "postgres"


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - HOST / PORT: listen address, default 0.0.0.0:3000
    - APP_ENV (or NODE_ENV): environment label, default 'development'
    - PERSISTENCE_BACKEND: 'postgres' (default) or 'memory'
    - DB_HOST, DB_PORT, DB_USER, DB_PASSWORD, DB_NAME: PostgreSQL connection
    - DB_POOL_MIN_SIZE, DB_POOL_MAX_SIZE, DB_POOL_TIMEOUT: connection pool tuning
    - DB_INIT_SCHEMA: 'true' to create the todos table at startup (default: true)
    - STARTUP_RETRIES, STARTUP_RETRY_DELAY: database wait loop budget and delay
    - STARTUP_FAIL_FAST: 'true' to abort startup when the database never answers
    - SEED_DEMO_DATA: 'true' to seed the in-memory store with sample todos
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root logging level, default 'INFO'
    """

    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"
    persistence_backend: str = DEFAULT_BACKEND
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "todouser"
    db_password: str = "todopass"
    db_name: str = "tododb"
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    db_pool_timeout: float = 5.0
    db_init_schema: bool = True
    startup_retries: int = 5
    startup_retry_delay: float = 5.0
    startup_fail_fast: bool = False
    seed_demo_data: bool = False
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def database_address(self) -> str:
        return f"{self.db_host}:{self.db_port}"


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_float(value: str, default: float) -> float:
    try:
        return float(value.strip())
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
    backend = _get_env("PERSISTENCE_BACKEND", DEFAULT_BACKEND).strip().lower()
    if backend not in BACKENDS:
        backend = DEFAULT_BACKEND

    environment = _get_env("APP_ENV", _get_env("NODE_ENV", "development")).strip()

    return Settings(
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=_parse_int(_get_env("PORT", "3000"), 3000),
        environment=environment,
        persistence_backend=backend,
        db_host=_get_env("DB_HOST", "localhost").strip(),
        db_port=_parse_int(_get_env("DB_PORT", "5432"), 5432),
        db_user=_get_env("DB_USER", "todouser"),
        db_password=_get_env("DB_PASSWORD", "todopass"),
        db_name=_get_env("DB_NAME", "tododb"),
        db_pool_min_size=max(_parse_int(_get_env("DB_POOL_MIN_SIZE", "1"), 1), 1),
        db_pool_max_size=max(_parse_int(_get_env("DB_POOL_MAX_SIZE", "10"), 10), 1),
        db_pool_timeout=_parse_float(_get_env("DB_POOL_TIMEOUT", "5"), 5.0),
        db_init_schema=_parse_bool(_get_env("DB_INIT_SCHEMA", "true"), True),
        startup_retries=max(_parse_int(_get_env("STARTUP_RETRIES", "5"), 5), 1),
        startup_retry_delay=max(_parse_float(_get_env("STARTUP_RETRY_DELAY", "5"), 5.0), 0.0),
        startup_fail_fast=_parse_bool(_get_env("STARTUP_FAIL_FAST", "false"), False),
        seed_demo_data=_parse_bool(_get_env("SEED_DEMO_DATA", "false"), False),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )
