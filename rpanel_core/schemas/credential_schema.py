"""
Pydantic schemas for credentials.

The read schema deliberately has no secret or hash field, so a credential
can never be serialized with its secret.
"""

from pydantic import BaseModel, ConfigDict, Field

from ..constants import PermissionLevel
from .mixins import IdMixin, TimestampMixin


class CredentialCreate(BaseModel):
    """Schema for creating a credential."""

    identifier: str = Field(min_length=1, max_length=100)
    secret: str = Field(min_length=1, max_length=128)
    permission_level: PermissionLevel = PermissionLevel.USER

    model_config = ConfigDict(extra="ignore")


class CredentialRead(IdMixin, TimestampMixin):
    """Schema for reading a credential."""

    identifier: str
    permission_level: PermissionLevel

    model_config = ConfigDict(from_attributes=True)


class SecretChange(BaseModel):
    """Schema for replacing the secret of a credential."""

    secret: str = Field(min_length=1, max_length=128)
