"""
Hosting profile store: profile rows and their 1:1 resource quota rows.

Uses SQLAlchemy directly. Transactions are managed by the caller; every
mutating method flushes so unique-constraint violations surface here.
"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import exists, func
from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_account_models import HostingProfile, ResourceQuota
from ..exceptions import not_found
from ..schemas.hosting_profile_schema import HostingProfileRead
from ..schemas.resource_quota_schema import ResourceQuotaFields, ResourceQuotaRead
from .base_service import SessionManagedService

PROFILE_UNIQUE_FIELDS = ("email", "account_number", "os_login", "credential_id")

# Columns a profile update may never touch
IMMUTABLE_PROFILE_FIELDS = frozenset({"id", "credential_id", "os_login", "created_at"})


class HostingProfileService(SessionManagedService):
    """Service for hosting profiles and resource quotas."""

    def __init__(self, session: Optional[Session] = None):
        super().__init__(session=session)

    # ==================== PROFILES ====================

    @operation()
    def create_profile(self, credential_id: str, **fields: Any) -> HostingProfileRead:
        """
        Insert a profile for a credential.

        Args:
            credential_id: Owning credential
            **fields: Column values; must include contact_name, email,
                account_number, os_login, language and theme

        Raises:
            AccountConflictError: If email, account number, login or credential is taken
        """
        profile = HostingProfile(credential_id=credential_id, **fields)
        self.session.add(profile)
        self._flush(
            "create_profile",
            unique_fields=PROFILE_UNIQUE_FIELDS,
            credential_id=credential_id,
            **fields,
        )
        self.logger.info(
            "Created hosting profile",
            extra={
                "profile_id": profile.id,
                "account_number": profile.account_number,
                "os_login": profile.os_login,
            },
        )
        return HostingProfileRead.model_validate(profile)

    def _get_model(self, profile_id: str) -> HostingProfile:
        profile = self.session.get(HostingProfile, profile_id)
        if profile is None:
            raise not_found("HostingProfile", account_id=profile_id)
        return profile

    def get_profile(self, profile_id: str) -> HostingProfileRead:
        return HostingProfileRead.model_validate(self._get_model(profile_id))

    def find_profile(self, profile_id: str) -> Optional[HostingProfileRead]:
        """Like get_profile but returns None instead of raising."""
        profile = self.session.get(HostingProfile, profile_id)
        return HostingProfileRead.model_validate(profile) if profile is not None else None

    def get_by_credential(self, credential_id: str) -> HostingProfileRead:
        profile = (
            self.session.query(HostingProfile)
            .filter(HostingProfile.credential_id == credential_id)
            .first()
        )
        if profile is None:
            raise not_found("HostingProfile", credential_id=credential_id)
        return HostingProfileRead.model_validate(profile)

    def _value_taken(self, column, value: Any, exclude_id: Optional[str]) -> bool:
        condition = column == value
        if exclude_id is not None:
            condition = condition & (HostingProfile.id != exclude_id)
        return self.session.query(exists().where(condition)).scalar()

    def email_exists(self, email: str, exclude_id: Optional[str] = None) -> bool:
        return self._value_taken(HostingProfile.email, email, exclude_id)

    def account_number_exists(self, account_number: str, exclude_id: Optional[str] = None) -> bool:
        return self._value_taken(HostingProfile.account_number, account_number, exclude_id)

    def os_login_exists(self, os_login: str) -> bool:
        return self._value_taken(HostingProfile.os_login, os_login, None)

    def count_profiles(self) -> int:
        return self.session.query(func.count(HostingProfile.id)).scalar() or 0

    def list_profiles(self, offset: int = 0, limit: Optional[int] = None) -> List[HostingProfileRead]:
        """Profiles in signup order."""
        query = self.session.query(HostingProfile).order_by(
            HostingProfile.added_date, HostingProfile.account_number
        )
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [HostingProfileRead.model_validate(profile) for profile in query.all()]

    def list_profiles_page(self, page: int, limit: int) -> Tuple[List[HostingProfileRead], int]:
        """One page of profiles plus the total row count."""
        total = self.count_profiles()
        return self.list_profiles(offset=(page - 1) * limit, limit=limit), total

    @operation()
    def update_profile(self, profile_id: str, changes: Dict[str, Any]) -> HostingProfileRead:
        """
        Apply a partial update; keys absent from ``changes`` stay untouched.

        Raises:
            AccountNotFoundError: If the profile does not exist
            AccountConflictError: If a new email or account number is taken
        """
        profile = self._get_model(profile_id)
        for field, value in changes.items():
            if field in IMMUTABLE_PROFILE_FIELDS:
                continue
            setattr(profile, field, value)
        self._flush("update_profile", unique_fields=PROFILE_UNIQUE_FIELDS, **changes)
        return HostingProfileRead.model_validate(profile)

    @operation()
    def delete_profile(self, profile_id: str) -> bool:
        """
        Delete a profile row.

        Returns:
            True if a row was removed, False if it was already gone
        """
        profile = self.session.get(HostingProfile, profile_id)
        if profile is None:
            return False
        # Sub-accounts lose their parent rather than blocking the delete
        self.session.query(HostingProfile).filter(
            HostingProfile.parent_account_id == profile_id
        ).update({HostingProfile.parent_account_id: None}, synchronize_session="fetch")
        self.session.delete(profile)
        self._flush("delete_profile")
        return True

    # ==================== QUOTAS ====================

    @operation()
    def create_quota(
        self, profile_id: str, changes: Optional[Dict[str, Any]] = None
    ) -> ResourceQuotaRead:
        """
        Insert the quota row of a profile, starting from the defaults.

        Args:
            profile_id: Owning profile
            changes: Limits that override the defaults
        """
        values = ResourceQuotaFields(**(changes or {})).model_dump(mode="json")
        quota = ResourceQuota(profile_id=profile_id, **values)
        self.session.add(quota)
        self._flush("create_quota", unique_fields=("profile_id",), profile_id=profile_id)
        return ResourceQuotaRead.model_validate(quota)

    def find_quota(self, profile_id: str) -> Optional[ResourceQuotaRead]:
        quota = (
            self.session.query(ResourceQuota).filter(ResourceQuota.profile_id == profile_id).first()
        )
        return ResourceQuotaRead.model_validate(quota) if quota is not None else None

    def get_quota(self, profile_id: str) -> ResourceQuotaRead:
        quota = self.find_quota(profile_id)
        if quota is None:
            raise not_found("ResourceQuota", account_id=profile_id)
        return quota

    @operation()
    def update_quota(self, profile_id: str, changes: Dict[str, Any]) -> ResourceQuotaRead:
        """
        Apply a partial quota update, creating the row if it is missing.

        Raises:
            AccountNotFoundError: If the profile itself does not exist
        """
        self._get_model(profile_id)
        quota = (
            self.session.query(ResourceQuota).filter(ResourceQuota.profile_id == profile_id).first()
        )
        if quota is None:
            self.logger.warning(
                "Resource quota missing, recreating from defaults",
                extra={"profile_id": profile_id},
            )
            return self.create_quota(profile_id, changes)

        for field, value in changes.items():
            setattr(quota, field, value)
        self._flush("update_quota")
        return ResourceQuotaRead.model_validate(quota)

    @operation()
    def delete_quota(self, profile_id: str) -> bool:
        """
        Delete the quota row of a profile.

        Returns:
            True if a row was removed, False if it was already gone
        """
        deleted = (
            self.session.query(ResourceQuota)
            .filter(ResourceQuota.profile_id == profile_id)
            .delete(synchronize_session="fetch")
        )
        self._flush("delete_quota")
        return bool(deleted)
