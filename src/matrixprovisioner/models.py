"""Shared domain models for matrixprovisioner."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .constants import (
    ADMIN_CONTAINER_PORT,
    ADMIN_HOST_PORT,
    ADMIN_IMAGE,
    DEFAULT_STAGE,
    HOMESERVER_CONFIG_PATH,
    REGISTRATION_SCRIPT_URL,
)


class ProvisionerState(Enum):
    """Pipeline states, declared in the only order they may be entered."""

    INIT = "init"
    UPDATING = "updating"
    FIREWALL_CONFIGURED = "firewall_configured"
    USER_READY = "user_ready"
    DATABASE_READY = "database_ready"
    PACKAGES_INSTALLED = "packages_installed"
    CONFIG_WRITTEN = "config_written"
    SERVICE_RUNNING = "service_running"
    CONTAINER_RUNNING = "container_running"
    TOOLS_INSTALLED = "tools_installed"
    SUMMARIZED = "summarized"
    ABORTED = "aborted"

    @property
    def rank(self) -> int:
        return list(ProvisionerState).index(self)


@dataclass(frozen=True)
class GeneratedSecrets:
    """Per-run random tokens written into the homeserver configuration."""

    macaroon_secret_key: str = field(repr=False)
    form_secret: str = field(repr=False)
    registration_shared_secret: str = field(repr=False)


@dataclass
class ProvisioningSession:
    """Inputs collected during one run. Passed explicitly to every step."""

    username: Optional[str] = None
    user_exists: bool = False
    db_password: Optional[str] = field(default=None, repr=False)
    server_name: Optional[str] = None
    lan_ip: Optional[str] = None
    secrets: Optional[GeneratedSecrets] = field(default=None, repr=False)
    current_stage: str = DEFAULT_STAGE

    def public_values(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "user_exists": self.user_exists,
            "server_name": self.server_name,
            "lan_ip": self.lan_ip,
        }


@dataclass(frozen=True)
class Step:
    """A named unit of pipeline work."""

    name: str
    title: str
    action: Callable[[ProvisioningSession], Any]
    reaches: Optional[ProvisionerState] = None


@dataclass(frozen=True)
class StageReport:
    """What the provisioner prints when a stage fails."""

    stage: str
    cause: str
    message: str
    exit_code: int

    def render(self) -> str:
        return (
            f"Failed at stage: {self.stage} ({self.cause}, exit code {self.exit_code})\n"
            f"{self.message}"
        )


@dataclass(frozen=True)
class ProvisionerSettings:
    """Paths, URLs and port mappings for one run."""

    work_dir: str
    homeserver_config_path: str = HOMESERVER_CONFIG_PATH
    registration_script_url: str = REGISTRATION_SCRIPT_URL
    admin_image: str = ADMIN_IMAGE
    admin_host_port: int = ADMIN_HOST_PORT
    admin_container_port: int = ADMIN_CONTAINER_PORT
