"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Every key can also live in a .env file next to the project.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # ODOO (ERP)
    # ===================
    odoo_base_url: str = Field(
        default="",
        description="Odoo base URL (without /xmlrpc suffix)"
    )
    odoo_db: str = Field(
        default="",
        description="Odoo database name"
    )
    odoo_user: str = Field(
        default="",
        description="Odoo login"
    )
    odoo_pass: str = Field(
        default="",
        description="Odoo password or API key"
    )
    odoo_timeout: int = Field(
        default=30,
        ge=1,
        le=600,
        description="XML-RPC timeout in seconds"
    )

    # ===================
    # PRESTASHOP (COMMERCE)
    # ===================
    presta_url: str = Field(
        default="",
        description="PrestaShop API base URL"
    )
    presta_key: str = Field(
        default="",
        description="PrestaShop webservice key"
    )
    presta_auth_scheme: str = Field(
        default="bearer",
        pattern="^(bearer|basic|ws_key)$",
        description="How the key is sent: bearer header, basic auth or ws_key query param"
    )
    presta_use_xml: bool = Field(
        default=True,
        description="Encode PATCH bodies as XML instead of JSON"
    )
    presta_timeout: int = Field(
        default=30,
        ge=1,
        le=600,
        description="HTTP timeout in seconds"
    )
    presta_search_path: str = Field(
        default="/products",
        description="Primary product search path (filters[reference])"
    )
    presta_legacy_search_path: str = Field(
        default="/api/products/",
        description="Legacy webservice search path (filter[reference])"
    )

    # ===================
    # SYNC FLAGS
    # ===================
    dry_run: bool = Field(
        default=False,
        description="Global dry-run; when true no run ever writes"
    )
    csv_always: bool = Field(
        default=False,
        description="Write the audit CSV on real runs too"
    )

    # ===================
    # LOCAL STATE
    # ===================
    cache_dir: str = Field(
        default="./cache",
        description="Directory of the SKU -> ID cache"
    )
    cache_ttl_seconds: int = Field(
        default=3600,
        ge=0,
        description="SKU cache entry lifetime"
    )
    dryrun_dir: str = Field(
        default="./dryrun",
        description="Directory for audit CSV files"
    )
    state_dir: str = Field(
        default="./logs",
        description="Directory for last-sync timestamp files"
    )
    lock_dir: str = Field(
        default="./locks",
        description="Directory for cron lock files"
    )
    lock_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        description="Age after which a lock file is considered stale"
    )

    # ===================
    # WEBHOOK
    # ===================
    webhook_token: str = Field(
        default="",
        description="Shared secret expected in the X-Hook-Token header"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    log_dir: Optional[str] = Field(
        None,
        description="When set, logs are also appended to <log_dir>/sync.log"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def odoo_configured(self) -> bool:
        """Check if Odoo credentials are present."""
        return bool(self.odoo_base_url and self.odoo_db and self.odoo_user and self.odoo_pass)

    @property
    def cache_file(self) -> Path:
        return Path(self.cache_dir) / "sku_to_id.json"

    def state_file(self, flow: str) -> Path:
        """Path of the last-sync timestamp for a flow."""
        return Path(self.state_dir) / f".{flow}_sync_timestamp"

    def lock_file(self, flow: str) -> Path:
        """Path of the cron lock for a flow."""
        return Path(self.lock_dir) / f"{flow}_sync.lock"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
