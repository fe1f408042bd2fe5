"""
Provisioning engine: turns a signup request into a hosting account and back.

A hosting account is one Credential, one HostingProfile, one ResourceQuota
and one host login. The relational rows and the host login cannot share a
transaction, so creation runs as a saga: every step commits on its own and
has a compensating action that the saga runs, in reverse order, if a later
step fails. Stores, the host-account gateway and the account-number
allocator are injected so tests can substitute them.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import AppConfig, get_config
from ..constants import Limits, PermissionLevel
from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..exceptions import (
    AccountConflictError,
    ErrorCode,
    OSAccountError,
    PersistenceError,
    ServiceError,
    validation_failed,
)
from ..schemas.account_schema import (
    AccountCreate,
    AccountDeletion,
    AccountPage,
    AccountUpdate,
    HostingAccountRead,
)
from ..schemas.credential_schema import CredentialCreate, CredentialRead
from ..schemas.hosting_profile_schema import HostingProfileRead
from ..schemas.resource_quota_schema import ResourceQuotaRead, ResourceQuotaUpdate
from ..services.base_service import SessionManagedService, page_count
from ..services.credential_service import CredentialService
from ..services.hosting_profile_service import HostingProfileService
from .login_names import derive_login_name
from .os_accounts import OSAccountGateway, build_os_gateway
from .saga import Saga
from .sequence import SequenceAllocator


class ProvisioningEngine(SessionManagedService):
    """
    Orchestrates the credential store, hosting profile store, account-number
    allocator and host-account gateway.

    Unlike the stores, the engine commits: each saga step is its own unit
    of work, whether or not the engine created the session.
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        credentials: Optional[CredentialService] = None,
        profiles: Optional[HostingProfileService] = None,
        os_gateway: Optional[OSAccountGateway] = None,
        allocator: Optional[SequenceAllocator] = None,
        config: Optional[AppConfig] = None,
    ):
        super().__init__(session=session)
        self.config = config or get_config()
        self.credentials = credentials or CredentialService(session=self.session, config=self.config)
        self.profiles = profiles or HostingProfileService(session=self.session)
        self.os_gateway = os_gateway or build_os_gateway(self.config)
        self.allocator = allocator or SequenceAllocator(self.session, self.config)

    # ==================== CREATE ====================

    @operation()
    def create_account(self, account_data: AccountCreate) -> HostingAccountRead:
        """
        Provision a hosting account.

        Steps, each undone if a later one fails:
        allocate account number, create credential, create host login,
        create profile, create quota.

        Raises:
            AccountConflictError: Identifier, email or login already in use
            ValidationError: Unknown parent account
            OSAccountError: Host tool failure, with the tool's output
            PersistenceError: Store failure after partial progress
        """
        login = derive_login_name(account_data.identifier)
        self._check_create_preconditions(account_data, login)

        home = self.os_gateway.home_directory(login)
        profile_fields = self._profile_defaults(account_data.profile_fields())
        limits = account_data.limits.changes() if account_data.limits else {}

        saga = Saga("create_account", on_abort=self.session.rollback)
        # Account numbers are never handed out twice, so allocation needs no undo
        saga.add_step("allocate_account_number", self.allocator.next)
        saga.add_step(
            "create_credential",
            lambda: self._create_credential(account_data),
            self._remove_credential,
        )
        saga.add_step(
            "create_os_account",
            lambda: self._create_os_account(login, home),
            self._remove_os_account,
        )
        saga.add_step(
            "create_profile",
            lambda: self._create_profile(
                saga.results["create_credential"].id,
                saga.results["allocate_account_number"],
                login,
                profile_fields,
            ),
            self._remove_profile,
        )
        saga.add_step(
            "create_quota",
            lambda: self._create_quota(saga.results["create_profile"].id, limits),
        )
        results = saga.run()

        account = HostingAccountRead(
            credential=results["create_credential"],
            profile=results["create_profile"],
            quota=results["create_quota"],
        )
        self.logger.info(
            "Provisioned hosting account",
            extra={
                "account_id": account.profile.id,
                "account_number": account.profile.account_number,
                "os_login": login,
            },
        )
        return account

    def _check_create_preconditions(self, account_data: AccountCreate, login: str) -> None:
        if self.credentials.identifier_exists(account_data.identifier):
            raise AccountConflictError("identifier", account_data.identifier)
        if self.profiles.email_exists(account_data.email):
            raise AccountConflictError("email", account_data.email)
        if self.profiles.os_login_exists(login):
            raise AccountConflictError(
                "os_login", login, identifier=account_data.identifier
            )
        if self.os_gateway.exists(login):
            raise AccountConflictError(
                "os_login", login, reason="host account already exists"
            )
        if account_data.parent_account_id is not None:
            self._check_parent(account_data.parent_account_id)

    def _check_parent(self, parent_account_id: str, account_id: Optional[str] = None) -> None:
        if parent_account_id == account_id:
            raise validation_failed(
                "parent_account_id", parent_account_id, "an account cannot be its own parent"
            )
        if self.profiles.find_profile(parent_account_id) is None:
            raise validation_failed(
                "parent_account_id", parent_account_id, "parent account does not exist"
            )

    def _profile_defaults(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        provisioning = self.config.provisioning
        fields["language"] = fields.get("language") or provisioning.default_language
        fields["theme"] = fields.get("theme") or provisioning.default_theme
        fields["added_date"] = fields.get("added_date") or utc_now()
        fields["template_additional"] = fields.get("template_additional") or []
        return fields

    def _commit(self, step: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Commit failed in {step}", cause=e, step=step) from e

    def _create_credential(self, account_data: AccountCreate) -> CredentialRead:
        credential = self.credentials.create_credential(
            CredentialCreate(
                identifier=account_data.identifier,
                secret=account_data.secret,
                permission_level=PermissionLevel.USER,
            )
        )
        self._commit("create_credential")
        return credential

    def _remove_credential(self, credential: CredentialRead) -> None:
        self.credentials.delete_credential(credential.id)
        self._commit("remove_credential")

    def _create_os_account(self, login: str, home: str) -> str:
        self.os_gateway.create(login, home)
        return login

    def _remove_os_account(self, login: str) -> None:
        self.os_gateway.remove(login)

    def _create_profile(
        self,
        credential_id: str,
        account_number: str,
        login: str,
        fields: Dict[str, Any],
    ) -> HostingProfileRead:
        """Insert the profile, drawing a fresh number if the allocated one collides."""
        attempts = self.config.provisioning.max_allocation_attempts
        for _ in range(attempts):
            try:
                profile = self.profiles.create_profile(
                    credential_id, account_number=account_number, os_login=login, **fields
                )
            except AccountConflictError as e:
                if e.field != "account_number":
                    raise
                self.logger.warning(
                    "Account number taken at insert, allocating another",
                    extra={"account_number": account_number},
                )
                account_number = self.allocator.next()
                continue
            self._commit("create_profile")
            return profile

        raise ServiceError(
            "Could not store profile with a free account number",
            error_code=ErrorCode.LIMIT_EXCEEDED,
            operation="create_profile",
            attempts=attempts,
        )

    def _remove_profile(self, profile: HostingProfileRead) -> None:
        self.profiles.delete_quota(profile.id)
        self.profiles.delete_profile(profile.id)
        self._commit("remove_profile")

    def _create_quota(self, profile_id: str, limits: Dict[str, Any]) -> ResourceQuotaRead:
        quota = self.profiles.create_quota(profile_id, limits)
        self._commit("create_quota")
        return quota

    # ==================== READ ====================

    def _aggregate(self, profile: HostingProfileRead) -> HostingAccountRead:
        return HostingAccountRead(
            credential=self.credentials.get_credential(profile.credential_id),
            profile=profile,
            quota=self.profiles.find_quota(profile.id),
        )

    @operation()
    def get_account(self, account_id: str) -> HostingAccountRead:
        """
        Raises:
            AccountNotFoundError: If no profile has this id
        """
        return self._aggregate(self.profiles.get_profile(account_id))

    @operation()
    def get_account_by_credential(self, credential_id: str) -> HostingAccountRead:
        return self._aggregate(self.profiles.get_by_credential(credential_id))

    @operation()
    def list_accounts(self) -> List[HostingAccountRead]:
        """Every hosting account, unpaginated."""
        return [self._aggregate(profile) for profile in self.profiles.list_profiles()]

    @operation()
    def list_accounts_page(
        self, page: Optional[int] = 1, limit: Optional[int] = None
    ) -> AccountPage:
        """
        One page of hosting accounts.

        A missing or non-positive page falls back to 1 and a missing or
        non-positive limit to the configured page size.

        Args:
            page: 1-based page number
            limit: Page size (capped at Limits.MAX_PAGE_SIZE)
        """
        if page is None or page < 1:
            page = 1
        if limit is None or limit < 1:
            limit = self.config.provisioning.default_page_size
        limit = min(limit, Limits.MAX_PAGE_SIZE)

        profiles, total = self.profiles.list_profiles_page(page, limit)
        return AccountPage(
            data=[self._aggregate(profile) for profile in profiles],
            total=total,
            page=page,
            limit=limit,
            total_pages=page_count(total, limit),
        )

    # ==================== UPDATE ====================

    @operation()
    def update_account(self, account_id: str, account_update: AccountUpdate) -> HostingAccountRead:
        """
        Merge a sparse update into the profile and, if present, the quota.

        Email and account number changes are checked against every other
        account first; the unique constraints catch a concurrent writer that
        slips in between the check and the write.

        Raises:
            AccountNotFoundError: If the account does not exist
            AccountConflictError: If a new email or account number is taken
        """
        profile = self.profiles.get_profile(account_id)
        changes = account_update.profile_changes()

        email = changes.get("email")
        if email is not None and email != profile.email:
            if self.profiles.email_exists(email, exclude_id=account_id):
                raise AccountConflictError("email", email, account_id=account_id)

        account_number = changes.get("account_number")
        if account_number is not None and account_number != profile.account_number:
            if self.profiles.account_number_exists(account_number, exclude_id=account_id):
                raise AccountConflictError(
                    "account_number", account_number, account_id=account_id
                )

        if changes.get("parent_account_id") is not None:
            self._check_parent(changes["parent_account_id"], account_id)

        try:
            if changes:
                self.profiles.update_profile(account_id, changes)
            if account_update.limits is not None:
                self.profiles.update_quota(account_id, account_update.limits.changes())
            self._commit("update_account")
        except Exception:
            self.session.rollback()
            raise

        return self.get_account(account_id)

    @operation()
    def update_limits(
        self, account_id: str, quota_update: ResourceQuotaUpdate
    ) -> HostingAccountRead:
        """
        Merge a sparse update into the quota, recreating a missing quota row.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        try:
            self.profiles.update_quota(account_id, quota_update.changes())
            self._commit("update_limits")
        except Exception:
            self.session.rollback()
            raise
        return self.get_account(account_id)

    @operation()
    def change_secret(self, account_id: str, new_secret: str) -> CredentialRead:
        """Replace the secret of the account's credential."""
        profile = self.profiles.get_profile(account_id)
        try:
            credential = self.credentials.change_secret(profile.credential_id, new_secret)
            self._commit("change_secret")
        except Exception:
            self.session.rollback()
            raise
        return credential

    # ==================== DELETE ====================

    @operation()
    def delete_account(self, account_id: str) -> AccountDeletion:
        """
        Deprovision a hosting account.

        Order: quota, profile, host login, credential. A host login that is
        already gone counts as removed. If removing it fails the relational
        records are still deleted and the orphaned login is reported as a
        warning for the operator.

        Raises:
            AccountNotFoundError: If the account does not exist
        """
        profile = self.profiles.get_profile(account_id)

        try:
            self.profiles.delete_quota(account_id)
            self.profiles.delete_profile(account_id)
            self._commit("delete_profile")
        except Exception:
            self.session.rollback()
            raise

        warning = None
        os_account_removed = False
        try:
            os_account_removed = self.os_gateway.remove(profile.os_login)
        except OSAccountError as e:
            warning = f"Host account {profile.os_login} could not be removed: {e.message}"
            self.logger.warning(
                "Orphaned host account left after deprovisioning",
                extra={
                    "account_id": account_id,
                    "os_login": profile.os_login,
                    "error_id": e.error_id,
                },
            )

        try:
            self.credentials.delete_credential(profile.credential_id)
            self._commit("delete_credential")
        except Exception:
            self.session.rollback()
            raise

        self.logger.info(
            "Deprovisioned hosting account",
            extra={"account_id": account_id, "account_number": profile.account_number},
        )
        return AccountDeletion(
            account_id=account_id,
            account_number=profile.account_number,
            os_login=profile.os_login,
            os_account_removed=os_account_removed,
            warning=warning,
        )
