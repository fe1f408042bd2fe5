"""
Shared test fixtures.

Unit tests run against an in-memory SQLite database whose tables are created
and dropped around every test; host accounts go through the in-memory
RecordingOSAccountGateway.
"""

import pytest
from sqlalchemy.orm import Session

from rpanel_core.config import AppConfig, OSAccountConfig, SecurityConfig, reset_config, set_config
from rpanel_core.db import DatabaseConfig, DatabaseManager, import_all_models
from rpanel_core.db.db_config import Base, initialize_db, set_db_manager
from rpanel_core.provisioning import ProvisioningEngine
from rpanel_core.schemas.account_schema import AccountCreate
from rpanel_core.services import CredentialService, HostingProfileService
from rpanel_core.utils.logger import reset_logging
from tests.fixtures.os_gateway import RecordingOSAccountGateway

ADMIN_IDENTIFIER = "admin"
ADMIN_SECRET = "adminpass"


@pytest.fixture(autouse=True)
def app_config() -> AppConfig:
    """Fast bcrypt, fixed admin credentials and no real host accounts."""
    config = AppConfig(
        security=SecurityConfig(
            bcrypt_rounds=4, admin_identifier=ADMIN_IDENTIFIER, admin_secret=ADMIN_SECRET
        ),
        os_accounts=OSAccountConfig(enabled=False),
    )
    set_config(config)
    yield config
    reset_config()
    reset_logging()


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """Create SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
        development_mode=True,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Create and initialize database manager with all models."""
    import_all_models()
    manager = initialize_db(db_config)
    yield manager
    set_db_manager(None)
    manager.close()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Fresh tables and a fresh session for each test.

    Tables are dropped afterwards so committed rows never leak between tests.
    """
    Base.metadata.create_all(db_manager.engine)
    session = db_manager.new_session()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture
def os_gateway() -> RecordingOSAccountGateway:
    return RecordingOSAccountGateway()


@pytest.fixture
def credential_service(db_session, app_config) -> CredentialService:
    return CredentialService(session=db_session, config=app_config)


@pytest.fixture
def profile_service(db_session) -> HostingProfileService:
    return HostingProfileService(session=db_session)


@pytest.fixture
def engine(db_session, os_gateway, app_config) -> ProvisioningEngine:
    """Provisioning engine wired to the test session and in-memory gateway."""
    return ProvisioningEngine(session=db_session, os_gateway=os_gateway, config=app_config)


@pytest.fixture
def signup():
    """Build an AccountCreate from a short name plus overrides."""

    def _signup(name: str = "newclient", **overrides) -> AccountCreate:
        data = {
            "identifier": name,
            "secret": f"{name}-secret",
            "contact_name": name.title(),
            "email": f"{name}@example.com",
        }
        data.update(overrides)
        return AccountCreate(**data)

    return _signup
