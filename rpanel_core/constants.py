"""
Constants and enums for the rpanel provisioning core.

This module centralizes the magic strings and default values used throughout
the package so the store, the engine and the HTTP surface agree on them.
"""

from enum import Enum


class OperationStatus(str, Enum):
    """Status values for operations."""

    SUCCESS = "success"
    ERROR = "error"
    COMPENSATED = "compensated"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    LOG_LEVEL = "RPANEL_LOG_LEVEL"
    DB_TYPE = "RPANEL_DB_TYPE"
    DB_PATH = "RPANEL_DB_PATH"
    DB_HOST = "RPANEL_DB_HOST"
    DB_PORT = "RPANEL_DB_PORT"
    DB_NAME = "RPANEL_DB_NAME"
    DB_USER = "RPANEL_DB_USER"
    DB_PASSWORD = "RPANEL_DB_PASSWORD"
    DB_ECHO = "RPANEL_DB_ECHO"
    ADMIN_USER = "RPANEL_ADMIN_USER"
    ADMIN_PASSWORD = "RPANEL_ADMIN_PASSWORD"
    BCRYPT_ROUNDS = "RPANEL_BCRYPT_ROUNDS"
    HOST = "RPANEL_HOST"
    PORT = "RPANEL_PORT"
    SKIP_LINUX_USER = "SKIP_LINUX_USER"
    TEST_MODE = "TEST_MODE"


class PermissionLevel(str, Enum):
    """Permission levels a credential can hold."""

    ADMIN = "admin"
    USER = "user"
    READONLY = "readonly"


class CronType(str, Enum):
    """Kinds of cron job a hosting account may schedule."""

    FULL = "full"
    CHROOTED = "chrooted"
    URL = "url"


class DatabaseType(str, Enum):
    """Relational stores the panel can run against."""

    SQLITE = "sqlite"
    POSTGRES = "postgres"
    MYSQL = "mysql"


# Numeric constants
class Limits:
    """System limits and thresholds."""

    UNLIMITED = -1
    NONE = 0
    DEFAULT_PAGE_SIZE = 15
    MAX_PAGE_SIZE = 500
    MAX_ALLOCATION_ATTEMPTS = 5
    MIN_BCRYPT_ROUNDS = 4
    MAX_BCRYPT_ROUNDS = 31


class LoginNames:
    """Conventions for host login names derived from credential identifiers."""

    MAX_LENGTH = 32
    MIN_LENGTH = 3
    FILLER_PREFIX = "u"
    PADDING_SUFFIX = "123"


class ProfileDefaults:
    """Defaults applied to a hosting profile when the caller leaves them out."""

    LANGUAGE = "en"
    THEME = "default"
    ACCOUNT_NUMBER_PREFIX = "C"
    SEQUENCE_NAME = "account_number"


class QuotaDefaults:
    """Defaults applied to a resource quota when the caller leaves them out."""

    CRON_TYPE = CronType.URL
    CRON_FREQUENCY = 5
