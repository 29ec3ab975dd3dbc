"""Docker runtime services for matrixprovisioner."""

from typing import Callable

from matrixprovisioner.errors import PortInUseError, ToolInvocationError
from matrixprovisioner.errors_catalog import actionable_error

PORT_CONFLICT_MARKERS = (
    "port is already allocated",
    "address already in use",
)


class ContainerRuntime:
    """Starts detached containers through the docker CLI."""

    def __init__(self, logger, console, run_cmd: Callable):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd

    def validate_environment(self):
        self.run_cmd(["docker", "--version"], capture_output=True)

    def run(self, image: str, host_port: int, container_port: int) -> str:
        """Start a new container. No check is made for an existing one."""
        cmd = ["docker", "run", "-d", "-p", f"{host_port}:{container_port}", image]
        result = self.run_cmd(cmd, check=False, capture_output=True)

        if result.returncode == 0:
            container_id = (result.stdout or "").strip()
            self.logger.info("Started container %s from %s", container_id[:12], image)
            return container_id

        stderr = (result.stderr or "").strip()
        if any(marker in stderr.lower() for marker in PORT_CONFLICT_MARKERS):
            raise PortInUseError(
                f"{actionable_error('port_in_use', port=str(host_port))}\n{stderr}",
                exit_code=result.returncode,
            )
        raise ToolInvocationError(
            f"Command failed ({result.returncode}): {' '.join(cmd)}\n{stderr}",
            exit_code=result.returncode,
        )
