"""Host network discovery."""

import re
from typing import Callable

from matrixprovisioner.errors import ToolInvocationError

LOOPBACK_ADDRESS = "127.0.0.1"
INET_PATTERN = re.compile(r"\binet\s+(\d{1,3}(?:\.\d{1,3}){3})")


class NetworkService:
    def __init__(self, logger, run_cmd: Callable):
        self.logger = logger
        self.run_cmd = run_cmd

    def detect_lan_ip(self) -> str:
        """First non-loopback IPv4 address, or the loopback address when there is none."""
        try:
            result = self.run_cmd(["ip", "-4", "-o", "addr", "show"], check=False, capture_output=True)
        except ToolInvocationError as exc:
            self.logger.warning("Could not run ip (%s); using %s.", exc, LOOPBACK_ADDRESS)
            return LOOPBACK_ADDRESS
        if result.returncode != 0:
            self.logger.warning("Could not list interfaces; using %s.", LOOPBACK_ADDRESS)
            return LOOPBACK_ADDRESS

        for address in INET_PATTERN.findall(result.stdout or ""):
            if address != LOOPBACK_ADDRESS:
                return address
        return LOOPBACK_ADDRESS
