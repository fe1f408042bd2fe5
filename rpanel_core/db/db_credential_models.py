"""
Credential model: the login identity of a hosting account.

Just the data structure - hashing and verification live in CredentialService.
"""

from sqlalchemy import Column, String

from ..constants import PermissionLevel
from .db_base import TimestampMixin, UUIDMixin
from .db_config import Base


class Credential(Base, UUIDMixin, TimestampMixin):
    """Account identity with a one-way hashed secret."""

    __tablename__ = "credential"

    identifier = Column(String(100), nullable=False, unique=True, index=True)
    secret_hash = Column(String(255), nullable=False)
    permission_level = Column(
        String(20), nullable=False, default=PermissionLevel.USER.value
    )

    def __repr__(self):
        return (
            f"<Credential(id={self.id}, identifier={self.identifier}, "
            f"permission_level={self.permission_level})>"
        )
