"""
Tests for ProvisioningEngine.

Covers the create saga (including rollback after a failure at every step),
merge-patch updates, ordered and idempotent deletion, and listing.
"""

from datetime import datetime, timezone

import pytest

from rpanel_core.constants import Limits, PermissionLevel
from rpanel_core.db.db_account_models import HostingProfile, ResourceQuota
from rpanel_core.db.db_credential_models import Credential
from rpanel_core.exceptions import (
    AccountConflictError,
    AccountNotFoundError,
    OSAccountError,
    PersistenceError,
    ValidationError,
)
from rpanel_core.provisioning import ProvisioningEngine
from rpanel_core.schemas.account_schema import AccountUpdate
from rpanel_core.schemas.resource_quota_schema import ResourceQuotaUpdate


def _row_counts(session):
    session.rollback()
    return (
        session.query(Credential).count(),
        session.query(HostingProfile).count(),
        session.query(ResourceQuota).count(),
    )


class FixedAllocator:
    """Allocator that hands out a predetermined list of account numbers."""

    def __init__(self, *numbers):
        self.numbers = list(numbers)

    def next(self):
        return self.numbers.pop(0)


class TestCreateAccount:
    def test_creates_all_four_resources(self, engine, signup, os_gateway, db_session):
        account = engine.create_account(signup("newclient", contact_name="New Client"))

        assert account.profile.account_number == "C1"
        assert account.profile.os_login == "newclient"
        assert account.profile.email == "newclient@example.com"
        assert account.profile.contact_name == "New Client"
        assert account.profile.language == "en"
        assert account.profile.theme == "default"
        assert account.credential.identifier == "newclient"
        assert account.credential.permission_level == PermissionLevel.USER
        assert account.quota.profile_id == account.id
        assert account.quota.limit_web_domain == Limits.UNLIMITED
        assert os_gateway.accounts == {"newclient": "/home/newclient"}
        assert _row_counts(db_session) == (1, 1, 1)

    def test_account_numbers_follow_signup_order(self, engine, signup):
        first = engine.create_account(signup("alpha"))
        second = engine.create_account(signup("bravo"))

        assert (first.profile.account_number, second.profile.account_number) == ("C1", "C2")

    def test_login_derived_from_identifier(self, engine, signup, os_gateway):
        account = engine.create_account(signup("Web.Master", email="web@example.com"))

        assert account.profile.os_login == "webmaster"
        assert "webmaster" in os_gateway.accounts

    def test_limits_and_profile_fields_are_applied(self, engine, signup):
        account = engine.create_account(
            signup(
                "alpha",
                city="Berlin",
                language="de",
                reseller=True,
                limits={"limit_mailbox": 25, "web_servers": ["web1"]},
            )
        )

        assert account.profile.city == "Berlin"
        assert account.profile.language == "de"
        assert account.profile.reseller is True
        assert account.quota.limit_mailbox == 25
        assert account.quota.web_servers == ["web1"]
        assert account.quota.limit_maildomain == Limits.UNLIMITED

    def test_sub_account_of_existing_parent(self, engine, signup):
        parent = engine.create_account(signup("reseller", reseller=True))
        child = engine.create_account(signup("child", parent_account_id=parent.id))

        assert child.profile.parent_account_id == parent.id

    def test_unknown_parent_is_rejected_before_any_side_effect(
        self, engine, signup, os_gateway, db_session
    ):
        with pytest.raises(ValidationError):
            engine.create_account(signup("child", parent_account_id="missing"))

        assert os_gateway.calls == []
        assert _row_counts(db_session) == (0, 0, 0)

    @pytest.mark.parametrize(
        "name, email, field",
        [
            ("alpha", "other@example.com", "identifier"),
            ("bravo", "alpha@example.com", "email"),
            ("ALPHA!", "other@example.com", "os_login"),
        ],
    )
    def test_conflicts_are_detected_before_any_side_effect(
        self, engine, signup, os_gateway, db_session, name, email, field
    ):
        engine.create_account(signup("alpha"))
        os_gateway.calls.clear()

        with pytest.raises(AccountConflictError) as exc_info:
            engine.create_account(signup(name, email=email))

        assert exc_info.value.field == field
        assert os_gateway.calls == []
        assert _row_counts(db_session) == (1, 1, 1)

    def test_existing_host_login_is_a_conflict(self, engine, signup, os_gateway, db_session):
        os_gateway.accounts["newclient"] = "/home/newclient"

        with pytest.raises(AccountConflictError) as exc_info:
            engine.create_account(signup("newclient"))

        assert exc_info.value.field == "os_login"
        assert _row_counts(db_session) == (0, 0, 0)

    def test_retries_when_allocated_number_is_taken_at_insert(
        self, engine, signup, db_session, os_gateway, app_config
    ):
        engine.create_account(signup("alpha"))
        racing = ProvisioningEngine(
            session=db_session,
            os_gateway=os_gateway,
            allocator=FixedAllocator("C1", "C2"),
            config=app_config,
        )

        account = racing.create_account(signup("bravo"))

        assert account.profile.account_number == "C2"
        assert _row_counts(db_session) == (2, 2, 2)


class TestCreateRollback:
    """A failure at step k leaves no resource from steps 1..k-1 behind."""

    def test_failure_creating_credential(self, engine, signup, os_gateway, db_session, monkeypatch):
        def fail(credential_data):
            raise PersistenceError("credential store unavailable")

        monkeypatch.setattr(engine.credentials, "create_credential", fail)

        with pytest.raises(PersistenceError) as exc_info:
            engine.create_account(signup("newclient"))

        assert exc_info.value.context["failed_step"] == "create_credential"
        assert os_gateway.calls == []
        assert _row_counts(db_session) == (0, 0, 0)

    def test_failure_creating_host_account(self, engine, signup, os_gateway, db_session):
        os_gateway.fail_create = OSAccountError(
            "Failed to create host account newclient", diagnostic="useradd: Permission denied."
        )

        with pytest.raises(OSAccountError) as exc_info:
            engine.create_account(signup("newclient"))

        assert "useradd: Permission denied." in exc_info.value.message
        assert exc_info.value.context["compensated_steps"] == ["create_credential"]
        assert _row_counts(db_session) == (0, 0, 0)
        assert os_gateway.accounts == {}

    def test_failure_creating_profile(self, engine, signup, os_gateway, db_session, monkeypatch):
        def fail(credential_id, **fields):
            raise PersistenceError("profile store unavailable")

        monkeypatch.setattr(engine.profiles, "create_profile", fail)

        with pytest.raises(PersistenceError):
            engine.create_account(signup("newclient"))

        assert os_gateway.call_names() == ["create", "remove"]
        assert os_gateway.accounts == {}
        assert _row_counts(db_session) == (0, 0, 0)

    def test_failure_creating_quota(self, engine, signup, os_gateway, db_session, monkeypatch):
        def fail(profile_id, changes=None):
            raise PersistenceError("quota store unavailable")

        monkeypatch.setattr(engine.profiles, "create_quota", fail)

        with pytest.raises(PersistenceError) as exc_info:
            engine.create_account(signup("newclient"))

        assert exc_info.value.context["compensated_steps"] == [
            "create_profile",
            "create_os_account",
            "create_credential",
        ]
        assert os_gateway.accounts == {}
        assert _row_counts(db_session) == (0, 0, 0)

    def test_failed_compensation_is_reported_not_raised(
        self, engine, signup, os_gateway, db_session, monkeypatch
    ):
        def fail(profile_id, changes=None):
            raise PersistenceError("quota store unavailable")

        monkeypatch.setattr(engine.profiles, "create_quota", fail)
        os_gateway.fail_remove = OSAccountError("Failed to remove host account newclient")

        with pytest.raises(PersistenceError) as exc_info:
            engine.create_account(signup("newclient"))

        failures = exc_info.value.context["compensation_failures"]
        assert [f["step"] for f in failures] == ["create_os_account"]
        assert _row_counts(db_session) == (0, 0, 0)

    def test_account_number_is_not_reused_after_rollback(self, engine, signup, os_gateway):
        os_gateway.fail_create = OSAccountError("Failed to create host account alpha")
        with pytest.raises(OSAccountError):
            engine.create_account(signup("alpha"))

        os_gateway.fail_create = None
        account = engine.create_account(signup("alpha"))

        assert account.profile.account_number == "C2"


class TestReadAccounts:
    def test_get_account(self, engine, signup):
        created = engine.create_account(signup("alpha"))

        fetched = engine.get_account(created.id)

        assert fetched.profile.email == "alpha@example.com"
        assert fetched.credential.id == created.credential.id
        assert engine.get_account_by_credential(created.credential.id).id == created.id

    def test_get_missing_account(self, engine):
        with pytest.raises(AccountNotFoundError):
            engine.get_account("missing")

    def test_list_accounts(self, engine, signup):
        for name in ("alpha", "bravo", "charlie"):
            engine.create_account(signup(name))

        accounts = engine.list_accounts()

        assert [a.profile.account_number for a in accounts] == ["C1", "C2", "C3"]

    def test_list_accounts_page(self, engine, signup):
        for name in ("alpha", "bravo", "charlie"):
            engine.create_account(signup(name))

        first = engine.list_accounts_page(page=1, limit=2)
        second = engine.list_accounts_page(page=2, limit=2)

        assert (first.total, first.total_pages, len(first.data)) == (3, 2, 2)
        assert [a.profile.os_login for a in second.data] == ["charlie"]

    def test_page_size_is_capped(self, engine):
        page = engine.list_accounts_page(page=1, limit=Limits.MAX_PAGE_SIZE + 100)
        assert page.limit == Limits.MAX_PAGE_SIZE
        assert page.total_pages == 0

    @pytest.mark.parametrize("page, limit", [(0, 10), (1, 0), (-1, -5), (None, None)])
    def test_out_of_range_paging_uses_defaults(self, engine, signup, app_config, page, limit):
        engine.create_account(signup("alpha"))

        result = engine.list_accounts_page(page=page, limit=limit)

        assert result.page == 1
        expected_limit = limit if limit and limit > 0 else app_config.provisioning.default_page_size
        assert result.limit == expected_limit
        assert [a.profile.os_login for a in result.data] == ["alpha"]


class TestUpdateAccount:
    def test_absent_fields_are_untouched(self, engine, signup):
        created = engine.create_account(signup("alpha", city="Berlin", street="Main St 1"))

        updated = engine.update_account(created.id, AccountUpdate(city="Hamburg"))

        assert updated.profile.city == "Hamburg"
        assert updated.profile.street == "Main St 1"
        assert updated.profile.email == "alpha@example.com"
        assert updated.quota.limit_web_domain == created.quota.limit_web_domain

    def test_nullable_fields_can_be_cleared(self, engine, signup):
        created = engine.create_account(signup("alpha", city="Berlin"))

        updated = engine.update_account(created.id, AccountUpdate(city=None))

        assert updated.profile.city is None

    def test_embedded_limits_are_merged(self, engine, signup):
        created = engine.create_account(signup("alpha", limits={"limit_database": 3}))

        updated = engine.update_account(
            created.id, AccountUpdate(locked=True, limits={"limit_mailbox": 7})
        )

        assert updated.profile.locked is True
        assert updated.quota.limit_mailbox == 7
        assert updated.quota.limit_database == 3

    def test_email_change(self, engine, signup):
        created = engine.create_account(signup("alpha"))

        updated = engine.update_account(created.id, AccountUpdate(email="new@example.com"))

        assert updated.profile.email == "new@example.com"

    def test_keeping_own_email_is_not_a_conflict(self, engine, signup):
        created = engine.create_account(signup("alpha"))

        updated = engine.update_account(created.id, AccountUpdate(email="alpha@example.com"))

        assert updated.profile.email == "alpha@example.com"

    def test_email_taken_by_another_account(self, engine, signup):
        engine.create_account(signup("alpha"))
        bravo = engine.create_account(signup("bravo"))

        with pytest.raises(AccountConflictError) as exc_info:
            engine.update_account(bravo.id, AccountUpdate(email="alpha@example.com"))

        assert exc_info.value.field == "email"
        assert engine.get_account(bravo.id).profile.email == "bravo@example.com"

    def test_account_number_taken_by_another_account(self, engine, signup):
        engine.create_account(signup("alpha"))
        bravo = engine.create_account(signup("bravo"))

        with pytest.raises(AccountConflictError) as exc_info:
            engine.update_account(bravo.id, AccountUpdate(account_number="C1"))

        assert exc_info.value.field == "account_number"

    def test_concurrent_email_claim_is_caught_by_the_store(
        self, engine, signup, monkeypatch
    ):
        engine.create_account(signup("alpha"))
        bravo = engine.create_account(signup("bravo"))
        # Simulate a writer that took the email after the pre-check ran
        monkeypatch.setattr(engine.profiles, "email_exists", lambda email, exclude_id=None: False)

        with pytest.raises(AccountConflictError) as exc_info:
            engine.update_account(bravo.id, AccountUpdate(email="alpha@example.com"))

        assert exc_info.value.field == "email"
        assert engine.get_account(bravo.id).profile.email == "bravo@example.com"

    def test_account_cannot_be_its_own_parent(self, engine, signup):
        created = engine.create_account(signup("alpha"))

        with pytest.raises(ValidationError):
            engine.update_account(created.id, AccountUpdate(parent_account_id=created.id))

    def test_update_missing_account(self, engine):
        with pytest.raises(AccountNotFoundError):
            engine.update_account("missing", AccountUpdate(city="Berlin"))

    def test_update_limits(self, engine, signup):
        created = engine.create_account(signup("alpha"))

        updated = engine.update_limits(
            created.id, ResourceQuotaUpdate(limit_ssl=True, limit_cron_type="full")
        )

        assert updated.quota.limit_ssl is True
        assert updated.quota.limit_cron_type == "full"
        assert updated.quota.limit_web_domain == Limits.UNLIMITED

    def test_update_limits_recreates_missing_quota(self, engine, signup, profile_service, db_session):
        created = engine.create_account(signup("alpha"))
        profile_service.delete_quota(created.id)
        db_session.commit()

        updated = engine.update_limits(created.id, ResourceQuotaUpdate(limit_mailbox=4))

        assert updated.quota is not None
        assert updated.quota.limit_mailbox == 4

    def test_change_secret(self, engine, signup, credential_service):
        created = engine.create_account(signup("alpha"))

        engine.change_secret(created.id, "rotated-secret")

        assert credential_service.authenticate("alpha", "rotated-secret").id == created.credential.id


class TestDeleteAccount:
    def test_removes_everything_in_order(self, engine, signup, os_gateway, db_session):
        created = engine.create_account(signup("newclient"))

        result = engine.delete_account(created.id)

        assert result.account_number == "C1"
        assert result.os_account_removed is True
        assert result.warning is None
        assert os_gateway.accounts == {}
        assert _row_counts(db_session) == (0, 0, 0)
        with pytest.raises(AccountNotFoundError):
            engine.get_account(created.id)

    def test_host_account_already_removed(self, engine, signup, os_gateway, db_session):
        created = engine.create_account(signup("newclient"))
        del os_gateway.accounts["newclient"]

        result = engine.delete_account(created.id)

        assert result.os_account_removed is False
        assert result.warning is None
        assert _row_counts(db_session) == (0, 0, 0)

    def test_host_account_removal_failure_is_a_warning(
        self, engine, signup, os_gateway, db_session
    ):
        created = engine.create_account(signup("newclient"))
        os_gateway.fail_remove = OSAccountError(
            "Failed to remove host account newclient", diagnostic="userdel: user is logged in"
        )

        result = engine.delete_account(created.id)

        assert result.os_account_removed is False
        assert "userdel: user is logged in" in result.warning
        assert _row_counts(db_session) == (0, 0, 0)

    def test_delete_twice(self, engine, signup):
        created = engine.create_account(signup("newclient"))
        engine.delete_account(created.id)

        with pytest.raises(AccountNotFoundError):
            engine.delete_account(created.id)

    def test_deleted_identity_can_sign_up_again(self, engine, signup):
        created = engine.create_account(signup("newclient"))
        engine.delete_account(created.id)

        again = engine.create_account(signup("newclient"))

        assert again.profile.os_login == "newclient"
        assert again.profile.account_number == "C2"

    def test_delete_keeps_other_accounts(self, engine, signup, db_session):
        alpha = engine.create_account(signup("alpha"))
        engine.create_account(signup("bravo"))

        engine.delete_account(alpha.id)

        assert [a.profile.os_login for a in engine.list_accounts()] == ["bravo"]
        assert _row_counts(db_session) == (1, 1, 1)


def test_added_date_defaults_to_now(engine, signup):
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    account = engine.create_account(signup("alpha"))

    assert account.profile.added_date.replace(tzinfo=None) >= before.replace(microsecond=0)
