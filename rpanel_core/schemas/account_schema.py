"""
Pydantic schemas for the hosting-account aggregate.

A hosting account is one Credential, one HostingProfile and one
ResourceQuota; the host login is represented by the profile's ``os_login``.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .credential_schema import CredentialRead
from .hosting_profile_schema import HostingProfileFields, HostingProfileRead, check_email
from .mixins import reject_explicit_nulls
from .resource_quota_schema import ResourceQuotaRead, ResourceQuotaUpdate

# Profile fields a partial update may set back to null
NULLABLE_PROFILE_FIELDS = frozenset(
    set(HostingProfileFields.model_fields) | {"parent_account_id", "template_additional", "limits"}
)


class AccountCreate(HostingProfileFields):
    """Signup request for a new hosting account."""

    identifier: str = Field(min_length=1, max_length=100)
    secret: str = Field(min_length=1, max_length=128)
    contact_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)

    language: Optional[str] = Field(default=None, max_length=16)
    theme: Optional[str] = Field(default=None, max_length=64)
    locked: bool = False
    canceled: bool = False
    added_date: Optional[datetime] = None

    template_master: int = Field(default=0, ge=0)
    template_additional: List[str] = Field(default_factory=list)
    parent_account_id: Optional[str] = None
    reseller: bool = False

    limits: Optional[ResourceQuotaUpdate] = None

    @field_validator("email")
    def validate_email(cls, v: str) -> str:
        return check_email(v.strip())

    @field_validator("identifier", "contact_name")
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def profile_fields(self) -> dict:
        """Profile columns carried by the request, without credential or quota data."""
        return self.model_dump(exclude={"identifier", "secret", "limits"})


class AccountUpdate(HostingProfileFields):
    """
    Sparse profile update with an optional embedded quota block.

    Fields missing from the payload stay untouched.
    """

    contact_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    account_number: Optional[str] = Field(default=None, min_length=1, max_length=32)

    language: Optional[str] = Field(default=None, max_length=16)
    theme: Optional[str] = Field(default=None, max_length=64)
    locked: Optional[bool] = None
    canceled: Optional[bool] = None
    added_date: Optional[datetime] = None

    template_master: Optional[int] = Field(default=None, ge=0)
    template_additional: Optional[List[str]] = None
    parent_account_id: Optional[str] = None
    reseller: Optional[bool] = None

    limits: Optional[ResourceQuotaUpdate] = None

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data):
        return reject_explicit_nulls(data, NULLABLE_PROFILE_FIELDS)

    @field_validator("email")
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return check_email(v.strip() if v is not None else v)

    def profile_changes(self) -> dict:
        """Profile fields explicitly present in the payload."""
        changes = self.model_dump(exclude_unset=True, exclude={"limits"})
        if "template_additional" in changes and changes["template_additional"] is None:
            changes["template_additional"] = []
        return changes


class HostingAccountRead(BaseModel):
    """The fully provisioned aggregate; the credential never carries its secret."""

    credential: CredentialRead
    profile: HostingProfileRead
    quota: Optional[ResourceQuotaRead] = None

    @property
    def id(self) -> str:
        return self.profile.id


class AccountPage(BaseModel):
    """One page of hosting accounts."""

    data: List[HostingAccountRead]
    total: int
    page: int
    limit: int
    total_pages: int

    model_config = ConfigDict(from_attributes=True)


class AccountDeletion(BaseModel):
    """Outcome of deprovisioning a hosting account."""

    account_id: str
    account_number: str
    os_login: str
    os_account_removed: bool
    warning: Optional[str] = None
