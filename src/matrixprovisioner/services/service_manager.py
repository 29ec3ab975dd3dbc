"""systemd service lifecycle helpers."""

import time
from typing import Callable

from matrixprovisioner.constants import SERVICE_CHECK_DELAY_SECONDS
from matrixprovisioner.errors import ServiceStartError, ToolInvocationError
from matrixprovisioner.errors_catalog import actionable_error


class ServiceManager:
    """Wraps systemctl."""

    def __init__(self, logger, console, run_cmd: Callable):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd

    def start(self, name: str):
        self.run_cmd(["systemctl", "start", name], capture_output=True, error_cls=ServiceStartError)

    def restart(self, name: str):
        self.run_cmd(["systemctl", "restart", name], capture_output=True, error_cls=ServiceStartError)

    def stop(self, name: str):
        result = self.run_cmd(["systemctl", "stop", name], check=False, capture_output=True)
        if result.returncode != 0:
            self.logger.debug("Service %s was not stopped (exit %s).", name, result.returncode)

    def is_active(self, name: str) -> bool:
        result = self.run_cmd(["systemctl", "is-active", "--quiet", name], check=False, capture_output=True)
        return result.returncode == 0

    def status(self, name: str, lines: int = 10) -> str:
        result = self.run_cmd(
            ["systemctl", "status", name, "--no-pager", f"--lines={lines}"],
            check=False,
            capture_output=True,
        )
        return ((result.stdout or "") + (result.stderr or "")).rstrip()

    def show_status(self, name: str, lines: int = 10) -> str:
        output = self.status(name, lines=lines)
        self.console.print(output, markup=False, highlight=False)
        return output

    def ensure_active(self, name: str, delay: float = SERVICE_CHECK_DELAY_SECONDS):
        """Check the service once after a fixed delay."""
        time.sleep(delay)
        if self.is_active(name):
            self.console.print(f"[green][OK][/green] {name} is running")
            return

        output = self.status(name)
        raise ServiceStartError(f"{actionable_error('service_not_active', service=name)}\n{output}")

    def restart_and_verify(self, name: str, delay: float = SERVICE_CHECK_DELAY_SECONDS):
        try:
            self.restart(name)
        except ToolInvocationError:
            self.console.print(self.status(name), markup=False, highlight=False)
            raise
        self.ensure_active(name, delay=delay)
