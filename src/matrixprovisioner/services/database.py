"""PostgreSQL client operations run as the postgres superuser."""

import time
from typing import Callable, List

from matrixprovisioner.constants import (
    DB_READY_ATTEMPTS,
    DB_READY_INTERVAL_SECONDS,
    DB_READY_SETTLE_SECONDS,
    POSTGRES_SUPERUSER,
)
from matrixprovisioner.errors import DatabaseError, ReadinessTimeoutError
from matrixprovisioner.errors_catalog import actionable_error


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class DatabaseClient:
    """Executes SQL through psql. Statements are sent on stdin, never as arguments."""

    def __init__(self, logger, console, run_cmd: Callable, superuser: str = POSTGRES_SUPERUSER):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd
        self.superuser = superuser

    def _psql(self) -> List[str]:
        return ["sudo", "-u", self.superuser, "psql", "-v", "ON_ERROR_STOP=1", "-X", "-q"]

    def execute(self, sql: str, check: bool = True):
        return self.run_cmd(
            self._psql(),
            check=check,
            capture_output=True,
            input_text=sql,
            error_cls=DatabaseError,
        )

    def query_value(self, sql: str) -> str:
        result = self.run_cmd(
            self._psql() + ["-tA"],
            capture_output=True,
            input_text=sql,
            error_cls=DatabaseError,
        )
        return (result.stdout or "").strip()

    def is_ready(self) -> bool:
        result = self.run_cmd(
            ["sudo", "-u", self.superuser, "psql", "-c", "\\q"],
            check=False,
            capture_output=True,
        )
        return result.returncode == 0

    def wait_until_ready(
        self,
        attempts: int = DB_READY_ATTEMPTS,
        interval: float = DB_READY_INTERVAL_SECONDS,
        settle: float = DB_READY_SETTLE_SECONDS,
    ):
        self.console.print("[yellow]Waiting for PostgreSQL to be ready...[/yellow]")
        time.sleep(settle)

        for attempt in range(1, attempts + 1):
            if self.is_ready():
                self.console.print("[green][OK][/green] PostgreSQL is ready")
                return
            self.logger.debug("PostgreSQL not ready (attempt %s/%s).", attempt, attempts)
            if attempt < attempts:
                time.sleep(interval)

        raise ReadinessTimeoutError(actionable_error("database_not_ready", attempts=str(attempts)))

    def role_exists(self, role: str) -> bool:
        value = self.query_value(f"SELECT 1 FROM pg_roles WHERE rolname = {quote_literal(role)};")
        return value == "1"

    def create_role(self, role: str, password: str):
        self.execute(f"CREATE ROLE {quote_identifier(role)} WITH LOGIN PASSWORD {quote_literal(password)};")
        self.logger.info("Created database role %s", role)

    def alter_role_password(self, role: str, password: str):
        self.execute(f"ALTER ROLE {quote_identifier(role)} WITH PASSWORD {quote_literal(password)};")
        self.logger.info("Updated password of database role %s", role)

    def create_database(self, name: str, owner: str):
        self.execute(
            f"CREATE DATABASE {quote_identifier(name)}\n"
            "  ENCODING 'UTF8'\n"
            "  LC_COLLATE 'C'\n"
            "  LC_CTYPE 'C'\n"
            "  TEMPLATE template0\n"
            f"  OWNER {quote_identifier(owner)};"
        )
        self.logger.info("Created database %s owned by %s", name, owner)

    def drop_database(self, name: str):
        result = self.execute(f"DROP DATABASE IF EXISTS {quote_identifier(name)};", check=False)
        if result.returncode != 0:
            self.logger.warning("Could not drop database %s; continuing.", name)

    def drop_role(self, role: str):
        result = self.execute(f"DROP ROLE IF EXISTS {quote_identifier(role)};", check=False)
        if result.returncode != 0:
            self.logger.warning("Could not drop role %s; continuing.", role)
