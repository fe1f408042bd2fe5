"""
Stores used by the provisioning engine.

Each service owns or borrows a SQLAlchemy session and leaves transaction
boundaries to its caller.
"""

from .base_service import SessionManagedService
from .credential_service import CredentialService
from .hosting_profile_service import HostingProfileService

__all__ = [
    "SessionManagedService",
    "CredentialService",
    "HostingProfileService",
]
