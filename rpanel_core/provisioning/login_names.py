"""Host login names and home directories derived from credential identifiers."""

import posixpath
import re

from ..constants import LoginNames

_DISALLOWED = re.compile(r"[^a-z0-9_-]")


def derive_login_name(identifier: str) -> str:
    """
    Turn a credential identifier into a host login name.

    Lower-cases, drops every character outside ``[a-z0-9_-]``, prefixes a
    letter when the result does not start with one, pads names shorter than
    three characters and truncates to 32.

    >>> derive_login_name("My.User!123")
    'myuser123'
    >>> derive_login_name("ab")
    'ab123'
    """
    name = _DISALLOWED.sub("", identifier.lower())

    if not name or not ("a" <= name[0] <= "z"):
        name = LoginNames.FILLER_PREFIX + name

    if len(name) < LoginNames.MIN_LENGTH:
        name += LoginNames.PADDING_SUFFIX

    return name[: LoginNames.MAX_LENGTH]


def home_directory_for(login_name: str, home_root: str = "/home") -> str:
    """Home directory of a host login under ``home_root``."""
    return posixpath.join(home_root, login_name)
