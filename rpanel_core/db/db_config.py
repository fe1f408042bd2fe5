"""
Store configuration and the process-wide DatabaseManager.

SQLite is the default store. A file database is shared by concurrent
request threads, with a busy timeout instead of a pool; ``:memory:`` keeps a
single connection so every thread sees the same schema. PostgreSQL and
MySQL get a pooled engine with pre-ping.
"""

import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..constants import DatabaseType, EnvironmentVariable
from ..exceptions import ErrorCode, ServiceError, ValidationError
from ..utils import get_logger

# Declarative base shared by the credential, profile, quota and sequence tables
Base: Any = declarative_base()

_SERVER_DRIVERS = {
    DatabaseType.POSTGRES.value: ("postgresql", "5432"),
    DatabaseType.MYSQL.value: ("mysql+pymysql", "3306"),
}


class DatabaseConfig(BaseModel):
    """Where the account tables live and how connections to them are pooled."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    db_type: str = DatabaseType.SQLITE.value
    database: str
    host: str = "localhost"
    port: Optional[str] = None
    username: str = ""
    password: str = ""
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    sqlite_busy_timeout: int = 30
    echo: bool = False
    development_mode: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.db_type.lower() == DatabaseType.SQLITE.value

    def get_connection_string(self) -> str:
        db_type = self.db_type.lower()
        if db_type == DatabaseType.SQLITE.value:
            return f"sqlite:///{self.database}"

        if db_type not in _SERVER_DRIVERS:
            raise ValidationError(
                f"Unsupported database type: {self.db_type}",
                error_code=ErrorCode.INVALID_FORMAT,
                field="db_type",
                value=self.db_type,
            )

        missing = [
            name
            for name in ("host", "database", "username", "password")
            if not getattr(self, name)
        ]
        if missing:
            raise ValidationError(
                f"{db_type} store needs {', '.join(missing)}",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="database_config",
                missing=missing,
            )

        driver, default_port = _SERVER_DRIVERS[db_type]
        return (
            f"{driver}://{self.username}:{self.password}@"
            f"{self.host}:{self.port or default_port}/{self.database}"
        )

    def __repr__(self) -> str:
        # Never render the password
        return (
            f"DatabaseConfig(db_type='{self.db_type}', host='{self.host}', "
            f"port='{self.port}', database='{self.database}', "
            f"username='{self.username}', password='***')"
        )


class DatabaseManager:
    """Owns the engine and hands out sessions for one DatabaseConfig."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = self._build_engine()
        self.session_factory = sessionmaker(bind=self.engine)

    def _build_engine(self):
        url = self.config.get_connection_string()
        if not self.config.is_sqlite:
            return create_engine(
                url,
                echo=self.config.echo,
                pool_size=self.config.pool_size,
                max_overflow=self.config.max_overflow,
                pool_timeout=self.config.pool_timeout,
                pool_pre_ping=True,
            )

        options: dict = {
            "echo": self.config.echo,
            "connect_args": {
                "check_same_thread": False,
                "timeout": self.config.sqlite_busy_timeout,
            },
        }
        if self.config.database == ":memory:":
            options["poolclass"] = StaticPool
        return create_engine(url, **options)

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop every account table. Only allowed on a development store."""
        if not self.config.development_mode:
            raise ServiceError(
                "Refusing to drop tables outside development mode",
                error_code=ErrorCode.CONFIGURATION_ERROR,
                operation="drop_tables",
                db_type=self.config.db_type,
            )
        Base.metadata.drop_all(self.engine)

    def new_session(self) -> Session:
        """A fresh session; callers own its lifetime and must close it."""
        return self.session_factory()

    def close(self) -> None:
        self.engine.dispose()


def _env(variable: EnvironmentVariable, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(variable.value, default)


def get_production_config() -> DatabaseConfig:
    """
    Build the store configuration from ``RPANEL_DB_*``.

    ``RPANEL_DB_TYPE`` selects sqlite (default, file at ``RPANEL_DB_PATH``),
    postgres or mysql (``RPANEL_DB_HOST``/``PORT``/``NAME``/``USER``/``PASSWORD``).
    """
    db_type = (_env(EnvironmentVariable.DB_TYPE) or DatabaseType.SQLITE.value).lower()
    if db_type == DatabaseType.SQLITE.value:
        database = _env(EnvironmentVariable.DB_PATH, "./rpanel.db")
    else:
        database = _env(EnvironmentVariable.DB_NAME, "rpanel")

    return DatabaseConfig(
        db_type=db_type,
        database=database,
        host=_env(EnvironmentVariable.DB_HOST, "localhost"),
        port=_env(EnvironmentVariable.DB_PORT),
        username=_env(EnvironmentVariable.DB_USER, ""),
        password=_env(EnvironmentVariable.DB_PASSWORD, ""),
        pool_size=int(os.environ.get("RPANEL_DB_POOL_SIZE", "5")),
        max_overflow=int(os.environ.get("RPANEL_DB_MAX_OVERFLOW", "10")),
        pool_timeout=int(os.environ.get("RPANEL_DB_POOL_TIMEOUT", "30")),
        echo=(_env(EnvironmentVariable.DB_ECHO) or "false").lower() == "true",
    )


def import_all_models():
    """Register every table on ``Base.metadata`` before create_all."""
    from sqlalchemy.orm import configure_mappers

    from .db_account_models import AccountSequence, HostingProfile, ResourceQuota  # noqa
    from .db_credential_models import Credential  # noqa

    configure_mappers()


def init_db(db_manager: DatabaseManager) -> None:
    """Create any missing account tables; existing tables are left alone."""
    get_logger().info(
        "Initializing account store",
        extra={"db_type": db_manager.config.db_type, "database": db_manager.config.database},
    )
    import_all_models()
    db_manager.create_tables()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """
    The manager installed by ``initialize_db`` or ``set_db_manager``.

    Raises:
        ServiceError: CONFIGURATION_ERROR when none has been installed
    """
    if _db_manager is None:
        raise ServiceError(
            "Account store not initialized; call initialize_db() first",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            operation="get_db_manager",
        )
    return _db_manager


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    """Install (or with None, forget) the process-wide manager."""
    global _db_manager
    _db_manager = manager


def initialize_db(config: Optional[DatabaseConfig] = None) -> DatabaseManager:
    """Create the process-wide manager from ``config`` (or the environment) and its tables."""
    manager = DatabaseManager(config if config is not None else get_production_config())
    init_db(manager)
    set_db_manager(manager)
    return manager


def close_db() -> None:
    """Dispose of the process-wide engine, if any."""
    global _db_manager
    if _db_manager is not None:
        _db_manager.close()
        _db_manager = None
