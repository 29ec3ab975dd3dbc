"""System account management."""

import pwd
from typing import Callable


class UserManager:
    """Creates login accounts and grants sudo."""

    def __init__(self, logger, run_cmd: Callable, pwd_module=pwd):
        self.logger = logger
        self.run_cmd = run_cmd
        self.pwd = pwd_module

    def exists(self, username: str) -> bool:
        try:
            self.pwd.getpwnam(username)
        except KeyError:
            return False
        return True

    def create(self, username: str):
        # adduser asks for the account password on the terminal.
        self.run_cmd(["adduser", "--gecos", "", username])
        self.logger.info("Created user %s", username)

    def grant_sudo(self, username: str, check: bool = True) -> bool:
        result = self.run_cmd(["usermod", "-aG", "sudo", username], check=check, capture_output=True)
        if result.returncode != 0:
            self.logger.warning("Could not add %s to the sudo group; continuing.", username)
            return False
        return True
