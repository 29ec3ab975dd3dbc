"""Terminal prompts with input validation.

Every prompt loops until it gets an acceptable answer. There is no attempt
limit: the only way out of a loop other than a valid answer is Ctrl+C
(``KeyboardInterrupt``) or end of input (``click.Abort``), both of which
propagate to the caller untouched.
"""

import re
from typing import Callable, Optional, Tuple

import click

from matrixprovisioner.errors import ValidationError

USERNAME_PATTERN = re.compile(r"[a-z][a-z0-9_-]*")
SERVER_NAME_PATTERN = re.compile(
    r"[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)
AFFIRMATIVE_ANSWERS = ("y", "yes")


def _click_prompt(text: str, hide_input: bool = False) -> str:
    return click.prompt(text, default="", show_default=False, hide_input=hide_input)


def validate_username(value: str) -> str:
    if not value:
        raise ValidationError("Username cannot be empty")
    if not USERNAME_PATTERN.fullmatch(value):
        raise ValidationError(f"Invalid username: '{value}' - please enter a valid username.")
    return value


def validate_server_name(value: str) -> str:
    if not value:
        raise ValidationError("Server name cannot be empty")
    if not SERVER_NAME_PATTERN.fullmatch(value):
        raise ValidationError("Invalid server name format. Use subdomain.domain.com format")
    return value


class InteractionService:
    """Collects validated values from the operator."""

    def __init__(self, logger, console, prompt_func: Optional[Callable[..., str]] = None):
        self.logger = logger
        self.console = console
        self.prompt = prompt_func or _click_prompt

    def warn(self, message: str):
        self.console.print(f"[yellow][WARN][/yellow] {message}")

    def confirm(self, text: str) -> bool:
        answer = self.prompt(f"{text} (y/n)")
        return answer.strip().lower() in AFFIRMATIVE_ANSWERS

    def pause(self, text: str):
        self.prompt(text)

    def prompt_username(self, user_exists: Callable[[str], bool]) -> Tuple[str, bool]:
        """Return a valid account name and whether the account already exists."""
        while True:
            value = self.prompt("Enter new username").strip()
            try:
                username = validate_username(value)
            except ValidationError as exc:
                self.warn(str(exc))
                continue

            if not user_exists(username):
                return username, False

            self.warn(f"User '{username}' already exists")
            if self.confirm("Continue with existing user?"):
                return username, True

    def prompt_password(self, label: str) -> str:
        while True:
            password = self.prompt(f"Enter password for {label}", hide_input=True)
            if not password:
                self.warn("Password cannot be empty")
                continue
            confirmation = self.prompt("Confirm password", hide_input=True)
            if password != confirmation:
                self.warn("Passwords do not match")
                continue
            return password

    def prompt_server_name(self) -> str:
        while True:
            value = self.prompt("Enter your Matrix server name").strip()
            try:
                return validate_server_name(value)
            except ValidationError as exc:
                self.warn(str(exc))
