"""Domain errors for matrixprovisioner."""

from typing import Optional


class ProvisionerError(RuntimeError):
    """Raised when provisioning cannot continue safely."""

    exit_code = 1

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ValidationError(ProvisionerError):
    """Raised for user input that does not match the expected format."""


class ToolInvocationError(ProvisionerError):
    """Raised when an external command is missing or exits non-zero."""


class PackageError(ToolInvocationError):
    """Raised when the package manager reports a failure."""


class FirewallError(ToolInvocationError):
    """Raised when the firewall tool reports a failure."""


class DatabaseError(ToolInvocationError):
    """Raised when a database statement or client call fails."""


class ServiceStartError(ToolInvocationError):
    """Raised when a service does not come up after start or restart."""


class PortInUseError(ToolInvocationError):
    """Raised when the container runtime cannot bind the requested host port."""


class ReadinessTimeoutError(ProvisionerError):
    """Raised when a bounded readiness poll is exhausted."""


class ConfigWriteError(ProvisionerError):
    """Raised when a configuration file cannot be backed up or written."""


class DownloadError(ProvisionerError):
    """Raised when a remote file cannot be fetched."""
