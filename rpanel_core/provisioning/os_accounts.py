"""
Host login accounts.

The gateway is the only code that touches the host's user database. The
system implementation shells out to ``useradd``/``userdel``; the disabled
implementation is for CI and containers that lack the privileges.
"""

import pwd
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional

from ..config import AppConfig, OSAccountConfig, get_config
from ..exceptions import AccountConflictError, OSAccountError
from ..utils.logger import get_logger
from .login_names import home_directory_for


class OSAccountGateway(ABC):
    """Creates and removes host login accounts."""

    def __init__(self, config: Optional[OSAccountConfig] = None):
        self.config = config or get_config().os_accounts
        self.logger = get_logger()

    def home_directory(self, login: str) -> str:
        return home_directory_for(login, self.config.home_root)

    @abstractmethod
    def exists(self, login: str) -> bool:
        """Whether a host account with this login exists."""

    @abstractmethod
    def create(self, login: str, home: str) -> None:
        """
        Create a login with a home directory.

        Raises:
            AccountConflictError: If the login already exists
            OSAccountError: If the host tool fails
        """

    @abstractmethod
    def remove(self, login: str) -> bool:
        """
        Remove a login and its home directory.

        Returns:
            True if an account was removed, False if it was already absent

        Raises:
            OSAccountError: If the host tool fails and the account is still there
        """


class SystemOSAccountGateway(OSAccountGateway):
    """Gateway backed by the host's ``useradd``/``userdel`` tools."""

    def exists(self, login: str) -> bool:
        try:
            pwd.getpwnam(login)
        except KeyError:
            return False
        return True

    def create(self, login: str, home: str) -> None:
        if self.exists(login):
            raise AccountConflictError("os_login", login, reason="host account already exists")

        self._run(
            "create",
            login,
            [self.config.useradd_path, "-m", "-s", self.config.shell, "-d", home, login],
        )
        self.logger.info("Created host account", extra={"os_login": login, "home": home})

    def remove(self, login: str) -> bool:
        if not self.exists(login):
            self.logger.info("Host account already absent", extra={"os_login": login})
            return False

        try:
            self._run("remove", login, [self.config.userdel_path, "-r", login])
        except OSAccountError:
            # userdel also fails when only the home directory was already gone
            if self.exists(login):
                raise
            self.logger.warning(
                "userdel reported an error but the account is gone",
                extra={"os_login": login},
            )
        else:
            self.logger.info("Removed host account", extra={"os_login": login})
        return True

    def _run(self, action: str, login: str, command: List[str]) -> None:
        try:
            subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.config.tool_timeout,
            )
        except subprocess.CalledProcessError as e:
            diagnostic = ((e.stdout or "") + (e.stderr or "")).strip()
            raise OSAccountError(
                f"Failed to {action} host account {login}",
                diagnostic=diagnostic,
                cause=e,
                os_login=login,
                exit_code=e.returncode,
            ) from e
        except subprocess.TimeoutExpired as e:
            raise OSAccountError(
                f"Timed out trying to {action} host account {login}",
                diagnostic=f"{command[0]} did not finish in {e.timeout}s",
                cause=e,
                os_login=login,
            ) from e
        except OSError as e:
            raise OSAccountError(
                f"Cannot run {command[0]} to {action} host account {login}",
                diagnostic=str(e),
                cause=e,
                os_login=login,
            ) from e


class DisabledOSAccountGateway(OSAccountGateway):
    """Gateway that never touches the host; used when host accounts are switched off."""

    def exists(self, login: str) -> bool:
        return False

    def create(self, login: str, home: str) -> None:
        self.logger.info(
            "Host account creation disabled, skipping", extra={"os_login": login, "home": home}
        )

    def remove(self, login: str) -> bool:
        self.logger.info("Host account removal disabled, skipping", extra={"os_login": login})
        return False


def build_os_gateway(config: Optional[AppConfig] = None) -> OSAccountGateway:
    """Pick the gateway matching the host account configuration."""
    config = config or get_config()
    if config.os_accounts.enabled:
        return SystemOSAccountGateway(config.os_accounts)
    get_logger().warning("Host account management disabled by configuration")
    return DisabledOSAccountGateway(config.os_accounts)
