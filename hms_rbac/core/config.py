"""
Configuration management for the permission engine.
Uses Pydantic Settings for environment variable handling and validation.
"""

from typing import Optional, Set
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Settings
    app_name: str = Field(default="Hospital RBAC Service", env="APP_NAME")
    app_version: str = Field(default="1.0.0", env="APP_VERSION")
    app_env: str = Field(default="development", env="APP_ENV")
    debug: bool = Field(default=False, env="DEBUG")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    # Database Configuration
    database_host: str = Field(default="localhost", env="DATABASE_HOST")
    database_port: int = Field(default=5432, env="DATABASE_PORT")
    database_name: str = Field(default="hospital", env="DATABASE_NAME")
    database_user: str = Field(default="hospital", env="DATABASE_USER")
    database_password: str = Field(default="hospital", env="DATABASE_PASSWORD")
    database_pool_size: int = Field(default=10, env="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=20, env="DATABASE_MAX_OVERFLOW")
    database_pool_timeout: int = Field(default=30, env="DATABASE_POOL_TIMEOUT")
    database_pool_recycle: int = Field(default=3600, env="DATABASE_POOL_RECYCLE")
    database_url: str = Field(default="", env="DATABASE_URL", validate_default=True)

    # Redis Configuration
    redis_host: str = Field(default="localhost", env="REDIS_HOST")
    redis_port: int = Field(default=6379, env="REDIS_PORT")
    redis_db: int = Field(default=0, env="REDIS_DB")
    redis_password: Optional[str] = Field(default=None, env="REDIS_PASSWORD")
    redis_url: str = Field(default="", env="REDIS_URL", validate_default=True)

    # Permission Cache
    permission_cache_enabled: bool = Field(default=True, env="PERMISSION_CACHE_ENABLED")
    permission_cache_ttl: int = Field(default=900, env="PERMISSION_CACHE_TTL")  # 15 minutes
    permission_cache_prefix: str = Field(default="cache:user_permission", env="PERMISSION_CACHE_PREFIX")

    # Super-admin detection
    super_admin_roles: Set[str] = Field(default={"Super Admin"}, env="SUPER_ADMIN_ROLES")
    super_admin_role_slugs: Set[str] = Field(default={"super-admin"}, env="SUPER_ADMIN_ROLE_SLUGS")

    # Role hierarchy
    role_hierarchy_max_depth: int = Field(default=10, env="ROLE_HIERARCHY_MAX_DEPTH")

    # Change requests (0 disables the default expiry)
    change_request_default_expiry_days: int = Field(default=0, env="CHANGE_REQUEST_DEFAULT_EXPIRY_DAYS")

    # Audit & Compliance
    audit_logging_enabled: bool = Field(default=True, env="AUDIT_LOGGING_ENABLED")

    @field_validator("database_url", mode="before")
    @classmethod
    def build_database_url(cls, v, info):
        """Build database URL from components if not provided."""
        if v:
            return v
        values = info.data
        return f"postgresql://{values.get('database_user', 'hospital')}:{values.get('database_password', 'hospital')}@{values.get('database_host', 'localhost')}:{values.get('database_port', 5432)}/{values.get('database_name', 'hospital')}"

    @field_validator("redis_url", mode="before")
    @classmethod
    def build_redis_url(cls, v, info):
        """Build Redis URL from components if not provided."""
        if v:
            return v
        values = info.data
        password_part = f":{values.get('redis_password')}@" if values.get('redis_password') else ""
        return f"redis://{password_part}{values.get('redis_host', 'localhost')}:{values.get('redis_port', 6379)}/{values.get('redis_db', 0)}"

    @field_validator("super_admin_roles", "super_admin_role_slugs", mode="before")
    @classmethod
    def parse_name_set(cls, v):
        """Parse comma-separated role names into a set."""
        if isinstance(v, str):
            return {name.strip() for name in v.split(",") if name.strip()}
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
