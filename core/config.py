"""
Configuration Module

Provides the explicit settings object consumed by the batch ingestor,
row processor, verification responder and web application. Settings are
read from the environment exactly once, at the edge, and then passed down.

Example usage:
    from core.config import Settings

    settings = Settings.from_env()
    print(settings.public_base_url)
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_PUBLIC_BASE_URL = "http://localhost:8000"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./storage/certvault.db"
DEFAULT_JWT_SECRET = "dev-secret-change-me"
DEFAULT_ASSET_FETCH_TIMEOUT_S = 8.0
DEFAULT_SIGNED_URL_TTL_S = 60


def _env_bool(env: Dict[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def normalize_database_url(url: str) -> str:
    """
    Rewrite plain Postgres URLs to use the asyncpg driver.

    Args:
        url: Database URL as configured

    Returns:
        URL usable with SQLAlchemy's async engine

    Example:
        >>> normalize_database_url("postgres://u:p@db/certs")
        'postgresql+asyncpg://u:p@db/certs'
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


class Settings(BaseModel):
    """Runtime configuration for CertVault."""

    public_base_url: str = Field(
        DEFAULT_PUBLIC_BASE_URL,
        description="Public base URL used to build verification and download links",
    )
    asset_fetch_timeout_s: float = Field(
        DEFAULT_ASSET_FETCH_TIMEOUT_S,
        gt=0,
        description="Upper bound for fetching a logo or photo",
    )
    local_asset_root: Optional[Path] = Field(
        None,
        description="If set, local asset references must resolve inside this directory",
    )

    database_url: str = DEFAULT_DATABASE_URL
    db_pool_size: int = Field(5, ge=1)
    db_max_overflow: int = Field(10, ge=0)
    db_echo: bool = False

    storage_dir: Path = Path("storage/objects")
    storage_public: bool = True
    signed_url_ttl_s: int = Field(DEFAULT_SIGNED_URL_TTL_S, ge=1)

    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_expiry_hours: int = Field(24 * 7, ge=1)
    issuer_roles: List[str] = Field(default_factory=lambda: ["admin", "registrar"])

    environment: str = "development"
    max_upload_size_mb: int = Field(10, ge=1)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    rate_limit_enabled: bool = True
    verify_rate_limit_per_min: int = Field(60, ge=1)

    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v:
            return DEFAULT_PUBLIC_BASE_URL
        return v

    @field_validator("database_url")
    @classmethod
    def async_driver(cls, v: str) -> str:
        return normalize_database_url(v)

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Unset variables fall back to their defaults.

        Args:
            env: Mapping to read from (defaults to os.environ)

        Returns:
            Settings instance

        Example:
            >>> settings = Settings.from_env({"PUBLIC_BASE_URL": "https://certs.example.edu/"})
            >>> settings.public_base_url
            'https://certs.example.edu'
        """
        env = dict(os.environ if env is None else env)
        values = {}

        if env.get("PUBLIC_BASE_URL"):
            values["public_base_url"] = env["PUBLIC_BASE_URL"]
        if env.get("ASSET_FETCH_TIMEOUT"):
            values["asset_fetch_timeout_s"] = float(env["ASSET_FETCH_TIMEOUT"])
        if env.get("LOCAL_ASSET_ROOT"):
            values["local_asset_root"] = Path(env["LOCAL_ASSET_ROOT"])

        if env.get("DATABASE_URL"):
            values["database_url"] = env["DATABASE_URL"]
        if env.get("DB_POOL_SIZE"):
            values["db_pool_size"] = int(env["DB_POOL_SIZE"])
        if env.get("DB_MAX_OVERFLOW"):
            values["db_max_overflow"] = int(env["DB_MAX_OVERFLOW"])
        values["db_echo"] = _env_bool(env, "DB_ECHO", False)

        if env.get("STORAGE_DIR"):
            values["storage_dir"] = Path(env["STORAGE_DIR"])
        values["storage_public"] = _env_bool(env, "STORAGE_PUBLIC", True)
        if env.get("SIGNED_URL_TTL_SECONDS"):
            values["signed_url_ttl_s"] = int(env["SIGNED_URL_TTL_SECONDS"])

        if env.get("JWT_SECRET"):
            values["jwt_secret"] = env["JWT_SECRET"]
        if env.get("JWT_EXPIRY_HOURS"):
            values["jwt_expiry_hours"] = int(env["JWT_EXPIRY_HOURS"])
        if env.get("ISSUER_ROLES"):
            values["issuer_roles"] = [r.strip() for r in env["ISSUER_ROLES"].split(",") if r.strip()]

        if env.get("ENVIRONMENT"):
            values["environment"] = env["ENVIRONMENT"]
        _max_mb_env = env.get("MAX_UPLOAD_SIZE_MB") or env.get("MAX_UPLOAD_MB")
        if _max_mb_env:
            values["max_upload_size_mb"] = int(_max_mb_env)
        if env.get("CORS_ORIGINS"):
            values["cors_origins"] = [o.strip() for o in env["CORS_ORIGINS"].split(",") if o.strip()]
        values["rate_limit_enabled"] = _env_bool(env, "RATE_LIMIT_ENABLED", True)
        if env.get("VERIFY_RATE_LIMIT_PER_MIN"):
            values["verify_rate_limit_per_min"] = int(env["VERIFY_RATE_LIMIT_PER_MIN"])

        if env.get("LOG_LEVEL"):
            values["log_level"] = env["LOG_LEVEL"]
        if env.get("LOG_FORMAT"):
            values["log_format"] = env["LOG_FORMAT"]

        return cls(**values)
