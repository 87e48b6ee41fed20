from __future__ import annotations

import json
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _split_csv(v, default: List[str]) -> List[str]:
    if v is None:
        return default
    if isinstance(v, str) and v.strip().startswith("["):
        v = json.loads(v)
    if isinstance(v, str):
        parts = [p.strip() for p in v.split(",") if p.strip()]
        return parts or default
    if isinstance(v, (list, tuple)):
        return list(v) or default
    return default


class AppSettings(BaseSettings):
    """
    Application-level settings for the stock ledger service.

    This is separate from stockledger.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Stock Ledger API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Multi-location inventory ledger. Applies stock additions, transfers, "
            "disposals and repairs as auditable transactions with an approval workflow."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, register demo locations and items after migrations.",
    )

    # Ledger behavior
    PRIVILEGED_ROLES: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["admin"],
        description="Roles whose transfers apply immediately and who may approve requests.",
    )
    NOTIFY_TIMEOUT_SECONDS: float = Field(
        default=5.0, gt=0, description="Upper bound for a single notification dispatch."
    )
    LEDGER_MAX_RETRIES: int = Field(
        default=3, ge=0, description="Retries of a ledger unit after a concurrent item update."
    )

    # Tokens
    JWT_SECRET_KEY: str = Field(default="change-me", description="HMAC key for bearer tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        return _split_csv(v, ["*"])

    @field_validator("PRIVILEGED_ROLES", mode="before")
    @classmethod
    def _parse_privileged_roles(cls, v):
        return _split_csv(v, ["admin"])


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      For simplicity we construct a new instance each time. If caching is desired,
      we can add a module-level cache or lru_cache.
    """
    return AppSettings()
