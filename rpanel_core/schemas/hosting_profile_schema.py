"""
Pydantic schemas for hosting profiles.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .mixins import IdMixin, TimestampMixin


def check_email(v: Optional[str]) -> Optional[str]:
    """Basic email validation."""
    if v is not None and ("@" not in v or v.startswith("@") or v.endswith("@")):
        raise ValueError("Invalid email address")
    return v


class HostingProfileFields(BaseModel):
    """Optional contact, address and billing fields shared by create and update."""

    # Company and contact
    company_name: Optional[str] = Field(default=None, max_length=255)
    vat_id: Optional[str] = Field(default=None, max_length=64)
    company_id: Optional[str] = Field(default=None, max_length=64)
    gender: Optional[str] = Field(default=None, max_length=16)
    contact_firstname: Optional[str] = Field(default=None, max_length=255)
    telephone: Optional[str] = Field(default=None, max_length=64)
    mobile: Optional[str] = Field(default=None, max_length=64)
    fax: Optional[str] = Field(default=None, max_length=64)
    internet: Optional[str] = Field(default=None, max_length=255)

    # Address
    street: Optional[str] = Field(default=None, max_length=255)
    zip: Optional[str] = Field(default=None, max_length=32)
    city: Optional[str] = Field(default=None, max_length=128)
    state: Optional[str] = Field(default=None, max_length=128)
    country: Optional[str] = Field(default=None, max_length=64)

    # Billing
    bank_account_owner: Optional[str] = Field(default=None, max_length=255)
    bank_account_number: Optional[str] = Field(default=None, max_length=64)
    bank_code: Optional[str] = Field(default=None, max_length=64)
    bank_name: Optional[str] = Field(default=None, max_length=255)
    bank_account_iban: Optional[str] = Field(default=None, max_length=64)
    bank_account_swift: Optional[str] = Field(default=None, max_length=32)
    paypal_email: Optional[str] = Field(default=None, max_length=255)

    notes: Optional[str] = None
    added_by: Optional[str] = Field(default=None, max_length=100)

    model_config = ConfigDict(extra="ignore")

    @field_validator("paypal_email")
    def validate_paypal_email(cls, v: Optional[str]) -> Optional[str]:
        return check_email(v)


class HostingProfileRead(IdMixin, TimestampMixin, HostingProfileFields):
    """Schema for reading a hosting profile."""

    credential_id: str
    contact_name: str
    email: str
    account_number: str
    os_login: str
    language: str
    theme: str
    locked: bool
    canceled: bool
    added_date: datetime
    template_master: int
    template_additional: List[str] = Field(default_factory=list)
    parent_account_id: Optional[str] = None
    reseller: bool

    model_config = ConfigDict(from_attributes=True)

    @field_validator("template_additional", mode="before")
    def null_templates_are_empty(cls, v):
        return [] if v is None else v
