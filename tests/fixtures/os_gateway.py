"""
In-memory host account gateway.

Keeps logins in a dict instead of the host's user database, records every
call, and can be told to fail on create or remove.
"""

import threading
from typing import Dict, List, Optional, Tuple

from rpanel_core.config import OSAccountConfig
from rpanel_core.exceptions import AccountConflictError
from rpanel_core.provisioning.os_accounts import OSAccountGateway


class RecordingOSAccountGateway(OSAccountGateway):
    """OSAccountGateway backed by a dict of login -> home directory."""

    def __init__(self, config: Optional[OSAccountConfig] = None):
        super().__init__(config or OSAccountConfig(enabled=True))
        self.accounts: Dict[str, str] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_create: Optional[Exception] = None
        self.fail_remove: Optional[Exception] = None
        self._lock = threading.Lock()

    def exists(self, login: str) -> bool:
        return login in self.accounts

    def create(self, login: str, home: str) -> None:
        with self._lock:
            self.calls.append(("create", login))
            if self.fail_create is not None:
                raise self.fail_create
            if login in self.accounts:
                raise AccountConflictError("os_login", login, reason="host account already exists")
            self.accounts[login] = home

    def remove(self, login: str) -> bool:
        with self._lock:
            self.calls.append(("remove", login))
            if self.fail_remove is not None:
                raise self.fail_remove
            return self.accounts.pop(login, None) is not None

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]
