"""
Tests for SequenceAllocator: first number, monotonic allocation, seeding from
existing profiles and skipping numbers already in use.
"""

import pytest

from rpanel_core.config import ProvisioningConfig
from rpanel_core.db.db_account_models import AccountSequence
from rpanel_core.exceptions import ServiceError
from rpanel_core.provisioning.sequence import SequenceAllocator
from rpanel_core.schemas.credential_schema import CredentialCreate


def _store_profile(credential_service, profile_service, name, account_number):
    credential = credential_service.create_credential(
        CredentialCreate(identifier=name, secret="secret")
    )
    profile_service.create_profile(
        credential.id,
        contact_name=name,
        email=f"{name}@example.com",
        account_number=account_number,
        os_login=name,
        language="en",
        theme="default",
    )
    profile_service.session.commit()


class TestSequenceAllocator:
    @pytest.fixture
    def allocator(self, db_session, app_config):
        return SequenceAllocator(db_session, app_config)

    def test_first_number_on_empty_store(self, allocator):
        assert allocator.next() == "C1"

    def test_numbers_increase(self, allocator):
        assert [allocator.next() for _ in range(3)] == ["C1", "C2", "C3"]

    def test_counter_row_is_committed(self, allocator, db_session):
        allocator.next()
        db_session.rollback()

        row = db_session.get(AccountSequence, "account_number")
        assert row.value == 1

    def test_seeds_after_highest_stored_number(
        self, allocator, credential_service, profile_service
    ):
        _store_profile(credential_service, profile_service, "alpha", "C7")
        _store_profile(credential_service, profile_service, "beta", "legacy-1")

        assert allocator.next() == "C8"

    def test_seeds_from_row_count_when_numbers_are_not_numeric(
        self, allocator, credential_service, profile_service
    ):
        _store_profile(credential_service, profile_service, "alpha", "legacy-1")
        _store_profile(credential_service, profile_service, "beta", "legacy-2")

        assert allocator.next() == "C3"

    def test_skips_numbers_already_in_use(
        self, allocator, credential_service, profile_service
    ):
        assert allocator.next() == "C1"
        _store_profile(credential_service, profile_service, "alpha", "C2")

        assert allocator.next() == "C3"

    def test_gives_up_after_attempt_limit(
        self, db_session, app_config, credential_service, profile_service
    ):
        app_config.provisioning = ProvisioningConfig(max_allocation_attempts=2)
        allocator = SequenceAllocator(db_session, app_config)
        allocator.next()
        _store_profile(credential_service, profile_service, "alpha", "C2")
        _store_profile(credential_service, profile_service, "beta", "C3")

        with pytest.raises(ServiceError):
            allocator.next()

    def test_custom_prefix_and_sequence(self, db_session, app_config):
        app_config.provisioning = ProvisioningConfig(account_number_prefix="R")
        allocator = SequenceAllocator(db_session, app_config, sequence_name="reseller")

        assert allocator.next() == "R1"
        assert SequenceAllocator(db_session, app_config).next() == "R1"
