"""
Stock Ledger Service
Centralized Configuration Management

Configuration is loaded through Pydantic settings with environment variable
support, validation, and type safety. Each subsystem reads its own prefix.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="stock_ledger", alias="POSTGRES_DB", description="Database name")
    user: str = Field(default="stockledger", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL",
        description="Full async database URL (overrides host/port), e.g. sqlite+aiosqlite:///./stock.db",
    )
    create_tables: bool = Field(default=False, description="Create tables on startup")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg"""
        if self.url:
            if self.url.startswith("postgresql://"):
                return self.url.replace("postgresql://", "postgresql+asyncpg://", 1)
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"

    @property
    def is_sqlite(self) -> bool:
        return self.async_url.startswith("sqlite")


class RedisSettings(BaseSettings):
    """Redis Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    enabled: bool = Field(default=False, description="Enable the product cache")
    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: Optional[SecretStr] = Field(default=None, description="Redis password")
    db: int = Field(default=0, description="Redis database number")
    max_connections: int = Field(default=50, description="Max connections")
    socket_timeout: int = Field(default=5, description="Socket timeout in seconds")
    decode_responses: bool = Field(default=True, description="Decode responses to strings")
    product_ttl: int = Field(default=300, description="Product detail TTL in seconds")
    url: Optional[str] = Field(default=None, alias="REDIS_URL", description="Redis URL (overrides host/port)")

    def get_url(self) -> str:
        """Redis connection URL - uses REDIS_URL if set, otherwise builds from host/port"""
        if self.url:
            return self.url
        if self.password:
            return f"redis://:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class InventorySettings(BaseSettings):
    """Stock bookkeeping defaults"""

    model_config = SettingsConfigDict(env_prefix="INVENTORY_")

    default_base_unit: str = Field(default="pcs", description="Base unit for new products")
    default_min_stock_level: int = Field(default=10, ge=0, description="Low-stock threshold in pieces")
    inbound_reference_prefix: str = Field(default="STOCK", description="Reference prefix for stock additions")
    outbound_reference_prefix: str = Field(default="REDUCE", description="Reference prefix for stock reductions")
    atomic_writes: bool = Field(
        default=True,
        description="Commit ledger append and snapshot update together; disable to commit the append first",
    )
    inbound_default_note: str = Field(default="Stock addition")
    outbound_default_note: str = Field(default="Stock reduction")
    missing_base_unit_label: str = Field(
        default="base units",
        description="Placeholder used in conversion examples when no base unit is flagged",
    )


class SecuritySettings(BaseSettings):
    """Access control and CORS Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    # Roles allowed to change catalog and stock
    write_roles: List[str] = Field(
        default=["admin", "stockist"],
        alias="WRITE_ROLES",
        description="Roles allowed to write",
    )
    reconcile_roles: List[str] = Field(
        default=["admin"],
        alias="RECONCILE_ROLES",
        description="Roles allowed to run snapshot repair",
    )

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="stock-ledger", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    inventory: InventorySettings = Field(default_factory=InventorySettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


settings = get_settings()
