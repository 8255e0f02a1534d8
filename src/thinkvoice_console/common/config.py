"""ThinkVoice Console configuration via pydantic-settings."""

import warnings
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "jwt_secret": "your-secret-key",
}


class ConsoleSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/console.db"
    database_ssl: bool = False
    database_ssl_reject_unauthorized: bool = True

    # Tokens
    jwt_secret: str = "your-secret-key"
    token_ttl: int = 7 * 24 * 3600  # 7 days
    impersonation_ttl: int = 15 * 60  # 15 minutes

    # Bootstrap super-admin
    super_admin_email: Optional[str] = None
    super_admin_password: Optional[str] = None
    super_admin_name: str = "Super Admin"

    # Voice platform
    bolna_api_url: str = "https://api.bolna.ai"
    bolna_api_key: str = ""
    bolna_timeout: float = 15.0
    bolna_webhook_secret: str = ""

    # API
    api_title: str = "ThinkVoice Console"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 5000
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:5000"]

    @property
    def async_database_url(self) -> str:
        """Return DATABASE_URL rewritten for an async driver.

        Hosted Postgres providers hand out ``postgres://`` URLs; SQLAlchemy
        needs the ``postgresql+asyncpg://`` form.
        """
        url = self.database_url
        for prefix in ("postgres://", "postgresql://"):
            if url.startswith(prefix):
                return "postgresql+asyncpg://" + url[len(prefix):]
        return url

    @property
    def is_postgres(self) -> bool:
        return self.async_database_url.startswith("postgresql")

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f.upper() for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using the insecure default JWT_SECRET; set it before deploying",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> ConsoleSettings:
    settings = ConsoleSettings()
    settings.validate_for_production()
    return settings
