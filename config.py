# ============================================================================
# CLAUDE CONTEXT - APPLICATION CONFIGURATION
# ============================================================================
# STATUS: Core Infrastructure - Configuration Management
# PURPOSE: Store connection settings and Identity Provider endpoint
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: AppConfig, get_app_config, get_postgres_connection_string, validate_configuration
# DEPENDENCIES: pydantic-settings, azure-identity (managed identity only)
# SOURCE: Environment variables / .env, Azure managed identity
# PATTERNS: Cached settings singleton, credential acquired per connection
# ============================================================================

"""
Application Configuration for Ocean Observer

Two collaborators need settings:

Store (PostgreSQL + PostGIS):
    POSTGIS_HOST, POSTGIS_PORT (5432), POSTGIS_DATABASE, POSTGIS_USER,
    POSTGIS_SSLMODE (require), and either
    - POSTGIS_PASSWORD, or
    - USE_MANAGED_IDENTITY=true: an Azure AD access token is fetched with
      DefaultAzureCredential and used as the password.

    The login role is a gateway only. It must be allowed to SET ROLE to the
    anonymous and authenticated roles; the repositories switch role inside
    each transaction so the Store's row-level policies apply to the caller.

Identity Provider:
    IDENTITY_URL (base URL, without /auth/v1), IDENTITY_API_KEY (public key
    sent as the `apikey` header), IDENTITY_TIMEOUT_SECONDS (10).

Usage:
    from config import get_postgres_connection_string

    with psycopg.connect(get_postgres_connection_string()) as conn:
        ...
"""

import logging
from typing import Optional
from functools import lru_cache
from urllib.parse import quote_plus

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Token audience for Azure Database for PostgreSQL
POSTGRES_AAD_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"


# ============================================================================
# Settings
# ============================================================================

class AppConfig(BaseSettings):
    """Process-wide settings, read once from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Store
    postgis_host: str = Field(..., description="PostgreSQL hostname")
    postgis_port: int = Field(default=5432, description="PostgreSQL port")
    postgis_database: str = Field(..., description="Database name")
    postgis_user: str = Field(..., description="Login role")
    postgis_password: Optional[str] = Field(default=None, description="Login password")
    postgis_sslmode: str = Field(default="require", description="libpq sslmode")
    use_managed_identity: bool = Field(
        default=False,
        description="Authenticate to PostgreSQL with an Azure AD token"
    )

    # Identity Provider
    identity_url: str = Field(..., description="Identity Provider base URL")
    identity_api_key: str = Field(..., description="Public API key for the apikey header")
    identity_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for token lookups"
    )

    @model_validator(mode="after")
    def require_password_or_identity(self) -> "AppConfig":
        if not self.use_managed_identity and not self.postgis_password:
            raise ValueError(
                "POSTGIS_PASSWORD is required when USE_MANAGED_IDENTITY=false"
            )
        return self

    @field_validator("identity_url")
    @classmethod
    def strip_identity_url(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """
    Settings singleton.

    Raises:
        ValidationError: if a required variable is missing
    """
    return AppConfig()


# ============================================================================
# PostgreSQL connection string
# ============================================================================

def get_postgres_connection_string(config: Optional[AppConfig] = None) -> str:
    """
    psycopg connection URL for the configured authentication mode.

    With managed identity a fresh token is requested on every call, so
    long-lived processes never reuse an expired one.

    Raises:
        ValueError: managed identity requested but azure-identity missing
        RuntimeError: token acquisition failed
    """
    config = config or get_app_config()

    if config.use_managed_identity:
        secret = _acquire_managed_identity_token(config)
    else:
        logger.debug(f"Password authentication for {config.postgis_host}")
        secret = config.postgis_password or ""

    return (
        f"postgresql://{quote_plus(config.postgis_user)}:{quote_plus(secret)}"
        f"@{config.postgis_host}:{config.postgis_port}"
        f"/{config.postgis_database}"
        f"?sslmode={config.postgis_sslmode}"
    )


def _acquire_managed_identity_token(config: AppConfig) -> str:
    logger.debug(f"Managed identity authentication for {config.postgis_host}")

    try:
        from azure.identity import DefaultAzureCredential
    except ImportError as e:
        raise ValueError(
            "USE_MANAGED_IDENTITY=true needs the azure-identity package"
        ) from e

    try:
        return DefaultAzureCredential().get_token(POSTGRES_AAD_SCOPE).token
    except Exception as e:
        logger.error(f"Managed identity token request failed: {e}")
        raise RuntimeError(
            f"Managed identity authentication failed: {e}. "
            "Check that the Function App identity exists and is a database principal."
        ) from e


# ============================================================================
# Startup check
# ============================================================================

def validate_configuration() -> bool:
    """
    Load settings and build a connection string once, logging the outcome.

    Secrets are not logged.

    Raises:
        Exception: whatever loading or building raised
    """
    try:
        config = get_app_config()
        logger.info(
            f"Store: {config.postgis_user}@{config.postgis_host}:{config.postgis_port}/"
            f"{config.postgis_database} (sslmode={config.postgis_sslmode}, "
            f"managed_identity={config.use_managed_identity})"
        )
        logger.info(f"Identity Provider: {config.identity_url}")

        get_postgres_connection_string(config)
        logger.info("✅ Configuration valid")
        return True

    except Exception as e:
        logger.error(f"❌ Configuration validation failed: {e}")
        raise
