"""Tests for host login name derivation."""

import pytest

from rpanel_core.provisioning.login_names import derive_login_name, home_directory_for


@pytest.mark.parametrize(
    "identifier, expected",
    [
        ("newclient", "newclient"),
        ("NewClient", "newclient"),
        ("new.client@example.com", "newclientexamplecom"),
        ("web_user-01", "web_user-01"),
        ("1337", "u1337"),
        ("_hidden", "u_hidden"),
        ("ab", "ab123"),
        ("a", "a123"),
        ("!!!", "u123"),
        ("", "u123"),
        ("Zoë", "zo123"),
    ],
)
def test_derive_login_name(identifier, expected):
    assert derive_login_name(identifier) == expected


def test_long_identifiers_are_truncated():
    login = derive_login_name("x" * 50)
    assert login == "x" * 32


def test_prefix_counts_towards_maximum_length():
    login = derive_login_name("9" * 40)
    assert len(login) == 32
    assert login.startswith("u9")


def test_derived_names_are_stable():
    assert derive_login_name("Client.One") == derive_login_name("client.one")


def test_home_directory():
    assert home_directory_for("newclient") == "/home/newclient"
    assert home_directory_for("newclient", "/srv/www/") == "/srv/www/newclient"


@pytest.mark.parametrize("identifier", ["!!!", "...", "@@"])
def test_identifier_without_usable_characters_still_starts_with_a_letter(identifier):
    login = derive_login_name(identifier)

    assert login == "u123"
    assert login[0].isalpha()
