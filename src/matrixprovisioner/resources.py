"""Host resources mutated by the provisioning steps.

Every resource follows the same contract: ``precheck`` observes the current
host state, ``apply`` changes it, ``verify`` confirms the change. ``ensure``
runs the three in order.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, List, Optional

from .constants import SERVICE_CHECK_DELAY_SECONDS
from .errors import ConfigWriteError, DatabaseError, FirewallError, PackageError
from .models import ProvisioningSession


class HostResource(ABC):
    def precheck(self, session: ProvisioningSession) -> Any:
        return None

    @abstractmethod
    def apply(self, session: ProvisioningSession) -> Any:
        raise NotImplementedError

    def verify(self, session: ProvisioningSession):
        return None

    def ensure(self, session: ProvisioningSession) -> Any:
        self.precheck(session)
        result = self.apply(session)
        self.verify(session)
        return result


class PackageSet(HostResource):
    """A fixed list of apt packages. Already installed packages are skipped."""

    def __init__(self, package_manager, names: Iterable[str]):
        self.package_manager = package_manager
        self.names = list(names)
        self.pending: List[str] = list(self.names)

    def precheck(self, session):
        self.pending = self.package_manager.missing(self.names)
        return self.pending

    def apply(self, session):
        self.package_manager.install(self.pending)
        return self.pending

    def verify(self, session):
        still_missing = self.package_manager.missing(self.names)
        if still_missing:
            raise PackageError(f"Packages still missing after install: {', '.join(still_missing)}")


class FirewallRuleSet(HostResource):
    """Enables ufw when needed and allows each rule."""

    def __init__(self, firewall, rules: Iterable[str], enable: bool = True):
        self.firewall = firewall
        self.rules = [str(rule) for rule in rules]
        self.enable = enable
        self.was_active = False

    def precheck(self, session):
        self.was_active = self.firewall.is_active()
        return self.was_active

    def apply(self, session):
        if self.enable and not self.was_active:
            self.firewall.enable()
        for rule in self.rules:
            self.firewall.allow(rule)

    def verify(self, session):
        if self.enable and not self.firewall.is_active():
            raise FirewallError("ufw reports the firewall as inactive after enabling it.")


class DatabaseRole(HostResource):
    """The homeserver's PostgreSQL role and the database it owns."""

    def __init__(self, database, interaction, console, role: str, database_name: str):
        self.database = database
        self.interaction = interaction
        self.console = console
        self.role = role
        self.database_name = database_name
        self.role_existed = False

    def precheck(self, session):
        self.database.wait_until_ready()
        self.role_existed = self.database.role_exists(self.role)
        return self.role_existed

    def apply(self, session):
        keep_existing = False
        if self.role_existed:
            self.interaction.warn(f"PostgreSQL user '{self.role}' already exists")
            if self.interaction.confirm("Drop and recreate?"):
                self.database.drop_database(self.database_name)
                self.database.drop_role(self.role)
            else:
                self.console.print("[cyan][INFO][/cyan] Keeping existing database, updating password")
                keep_existing = True

        session.db_password = self.interaction.prompt_password("Synapse database user")

        if keep_existing:
            self.database.alter_role_password(self.role, session.db_password)
            return "updated"

        self.database.create_role(self.role, session.db_password)
        self.database.create_database(self.database_name, owner=self.role)
        self.console.print("[green][OK][/green] Database and user created")
        return "created"

    def verify(self, session):
        if not self.database.role_exists(self.role):
            raise DatabaseError(f"Database role '{self.role}' is missing after setup.")


class ConfigFile(HostResource):
    """A generated file, backed up before it is replaced."""

    def __init__(self, filesystem, path: str, render: Callable[[ProvisioningSession], str]):
        self.filesystem = filesystem
        self.path = path
        self.render = render
        self.content: Optional[str] = None
        self.backup_path: Optional[str] = None

    def precheck(self, session):
        self.content = self.render(session)
        return self.content

    def apply(self, session):
        if self.content is None:
            self.content = self.render(session)
        self.backup_path = self.filesystem.backup_file(self.path)
        self.filesystem.write_text(self.path, self.content)
        return self.backup_path

    def verify(self, session):
        try:
            written = self.filesystem.read_text(self.path)
        except OSError as exc:
            raise ConfigWriteError(f"Could not read back {self.path}: {exc}") from exc
        if written != self.content:
            raise ConfigWriteError(f"{self.path} does not match the rendered configuration.")


class Service(HostResource):
    """A systemd unit brought up by start or restart."""

    def __init__(self, service_manager, name: str, restart: bool = False, check_delay: float = SERVICE_CHECK_DELAY_SECONDS):
        self.service_manager = service_manager
        self.name = name
        self.restart_on_apply = restart
        self.check_delay = check_delay

    def start(self):
        self.service_manager.start(self.name)

    def restart(self):
        self.service_manager.restart_and_verify(self.name, delay=self.check_delay)

    def apply(self, session):
        if self.restart_on_apply:
            self.restart()
        else:
            self.start()


class Container(HostResource):
    """A detached container publishing one port. Each apply starts a new instance."""

    def __init__(self, runtime, image: str, host_port: int, container_port: int):
        self.runtime = runtime
        self.image = image
        self.host_port = host_port
        self.container_port = container_port

    def apply(self, session):
        return self.runtime.run(self.image, self.host_port, self.container_port)
