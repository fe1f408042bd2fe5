"""
SQLAlchemy models and database configuration for the provisioning core.

This module provides a common entry point for all models.
"""

from .db_account_models import AccountSequence, HostingProfile, ResourceQuota
from .db_base import (
    JSON,
    TimestampMixin,
    UUIDMixin,
    utc_now,
)
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    get_production_config,
    import_all_models,
    initialize_db,
)
from .db_credential_models import Credential

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "import_all_models",
    "initialize_db",
    "get_production_config",
    # Models
    "AccountSequence",
    "Credential",
    "HostingProfile",
    "ResourceQuota",
]
