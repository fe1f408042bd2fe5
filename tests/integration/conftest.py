"""
Integration fixtures: a file-backed SQLite database per test, so requests
served from worker threads and concurrent callers share real state.
"""

import pytest

from rpanel_core.db import DatabaseConfig, DatabaseManager
from rpanel_core.db.db_config import init_db


@pytest.fixture
def file_db_manager(tmp_path) -> DatabaseManager:
    manager = DatabaseManager(
        DatabaseConfig(
            db_type="sqlite",
            database=str(tmp_path / "rpanel.db"),
            development_mode=True,
        )
    )
    init_db(manager)
    yield manager
    manager.close()
