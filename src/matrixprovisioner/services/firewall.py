"""UFW firewall management."""

from typing import Callable

from matrixprovisioner.errors import FirewallError


class FirewallTool:
    """Wraps the ufw command line."""

    def __init__(self, logger, run_cmd: Callable):
        self.logger = logger
        self.run_cmd = run_cmd

    def is_active(self) -> bool:
        result = self.run_cmd(["ufw", "status"], check=False, capture_output=True)
        if result.returncode != 0:
            return False
        first_line = (result.stdout or "").strip().splitlines()[:1]
        return bool(first_line) and first_line[0].strip().lower() == "status: active"

    def enable(self):
        self.run_cmd(["ufw", "--force", "enable"], capture_output=True, error_cls=FirewallError)

    def allow(self, rule: str):
        # ufw reports "Skipping adding existing rule" and exits 0 for duplicates.
        self.run_cmd(["ufw", "allow", str(rule)], capture_output=True, error_cls=FirewallError)
        self.logger.info("Firewall allows %s", rule)
