"""
Centralized configuration management for the rpanel provisioning core.

This module provides a unified configuration system with support for:
- Environment variables
- Runtime configuration
- Validation using Pydantic

Database connection settings live in ``rpanel_core.db.db_config``.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, Limits, LogLevel, ProfileDefaults


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").strip().lower() == "true"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class SecurityConfig(BaseModel):
    """Security-related configuration."""

    bcrypt_rounds: int = Field(
        default_factory=lambda: int(os.getenv(EnvironmentVariable.BCRYPT_ROUNDS.value, "12")),
        ge=Limits.MIN_BCRYPT_ROUNDS,
        le=Limits.MAX_BCRYPT_ROUNDS,
        description="bcrypt cost factor used when hashing secrets",
    )
    admin_identifier: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.ADMIN_USER.value, "admin"),
        description="Identifier of the admin credential seeded on an empty store",
    )
    admin_secret: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.ADMIN_PASSWORD.value, "admin"),
        description="Secret of the admin credential seeded on an empty store",
    )


class OSAccountConfig(BaseModel):
    """Host login account settings."""

    enabled: bool = Field(
        default_factory=lambda: not (
            _env_flag(EnvironmentVariable.SKIP_LINUX_USER.value)
            or _env_flag(EnvironmentVariable.TEST_MODE.value)
        ),
        description="Create and remove real host accounts",
    )
    home_root: str = Field(default="/home", description="Parent directory of home directories")
    shell: str = Field(default="/bin/bash", description="Login shell for new accounts")
    useradd_path: str = Field(default="useradd", description="User creation tool")
    userdel_path: str = Field(default="userdel", description="User removal tool")
    tool_timeout: Optional[int] = Field(
        default=None, ge=1, description="Seconds before a user-management tool call is abandoned"
    )


class ProvisioningConfig(BaseModel):
    """Configuration for hosting-account provisioning."""

    account_number_prefix: str = Field(
        default=ProfileDefaults.ACCOUNT_NUMBER_PREFIX, description="Prefix of account numbers"
    )
    max_allocation_attempts: int = Field(
        default=Limits.MAX_ALLOCATION_ATTEMPTS,
        ge=1,
        description="Attempts at finding an unused account number",
    )
    default_page_size: int = Field(
        default=Limits.DEFAULT_PAGE_SIZE, ge=1, description="Page size for paginated listings"
    )
    default_language: str = Field(default=ProfileDefaults.LANGUAGE, description="Profile locale")
    default_theme: str = Field(default=ProfileDefaults.THEME, description="Profile UI theme")


class AppConfig(BaseModel):
    """Main application configuration."""

    # Sub-configurations
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )
    os_accounts: OSAccountConfig = Field(
        default_factory=OSAccountConfig, description="Host account configuration"
    )
    provisioning: ProvisioningConfig = Field(
        default_factory=ProvisioningConfig, description="Provisioning configuration"
    )

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
