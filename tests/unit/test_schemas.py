"""
Tests for request schemas: required fields, null handling in partial updates
and quota value bounds.
"""

import pytest
from pydantic import ValidationError

from rpanel_core.schemas.account_schema import AccountCreate, AccountUpdate
from rpanel_core.schemas.resource_quota_schema import ResourceQuotaFields, ResourceQuotaUpdate

SIGNUP = {
    "identifier": "newclient",
    "secret": "newpass123",
    "contact_name": "New Client",
    "email": "newclient@example.com",
}


class TestAccountCreate:
    def test_minimal_signup(self):
        account = AccountCreate(**SIGNUP)

        assert "permission_level" not in account.model_dump()
        assert account.limits is None
        assert account.language is None

    @pytest.mark.parametrize("field", ["identifier", "secret", "contact_name", "email"])
    def test_required_fields(self, field):
        data = dict(SIGNUP)
        del data[field]
        with pytest.raises(ValidationError):
            AccountCreate(**data)

    @pytest.mark.parametrize("email", ["no-at-sign", "@example.com", "user@"])
    def test_invalid_email(self, email):
        with pytest.raises(ValidationError):
            AccountCreate(**{**SIGNUP, "email": email})

    def test_blank_identifier(self):
        with pytest.raises(ValidationError):
            AccountCreate(**{**SIGNUP, "identifier": "   "})

    def test_profile_fields_exclude_credential_data(self):
        fields = AccountCreate(**SIGNUP, city="Berlin").profile_fields()

        assert fields["city"] == "Berlin"
        assert fields["email"] == "newclient@example.com"
        assert "secret" not in fields
        assert "identifier" not in fields
        assert "limits" not in fields


class TestAccountUpdate:
    def test_only_present_fields_are_changes(self):
        update = AccountUpdate(city="Berlin")
        assert update.profile_changes() == {"city": "Berlin"}

    def test_empty_update(self):
        assert AccountUpdate().profile_changes() == {}

    @pytest.mark.parametrize("field", ["email", "contact_name", "locked", "account_number"])
    def test_required_columns_cannot_be_nulled(self, field):
        with pytest.raises(ValidationError):
            AccountUpdate(**{field: None})

    def test_optional_columns_can_be_nulled(self):
        update = AccountUpdate(city=None, parent_account_id=None)
        assert update.profile_changes() == {"city": None, "parent_account_id": None}

    def test_null_templates_become_empty(self):
        assert AccountUpdate(template_additional=None).profile_changes() == {
            "template_additional": []
        }


class TestResourceQuota:
    def test_defaults_use_sentinels(self):
        quota = ResourceQuotaFields()

        assert quota.limit_web_domain == -1
        assert quota.limit_shell_user == 0
        assert quota.limit_cron_type == "url"

    def test_below_unlimited_rejected(self):
        with pytest.raises(ValidationError):
            ResourceQuotaUpdate(limit_mailbox=-2)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            ResourceQuotaUpdate(limit_unicorns=3)

    def test_null_limit_rejected(self):
        with pytest.raises(ValidationError):
            ResourceQuotaUpdate(limit_mailbox=None)

    def test_null_pool_is_empty(self):
        assert ResourceQuotaUpdate(web_servers=None).changes() == {"web_servers": []}

    def test_unknown_cron_type_rejected(self):
        with pytest.raises(ValidationError):
            ResourceQuotaUpdate(limit_cron_type="hourly")
