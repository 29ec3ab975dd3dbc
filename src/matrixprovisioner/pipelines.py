"""Ordered provisioning pipelines.

Each pipeline turns its methods into a fixed list of :class:`Step` objects.
Steps receive the :class:`ProvisioningSession` explicitly and talk to the host
only through the collaborators held on :class:`HostServices`.
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table

from . import constants
from .models import ProvisionerSettings, ProvisionerState, ProvisioningSession, Step
from .resources import ConfigFile, Container, DatabaseRole, FirewallRuleSet, PackageSet, Service
from .services.command_runner import CommandRunner
from .services.database import DatabaseClient
from .services.docker_runtime import ContainerRuntime
from .services.download import DownloadService
from .services.filesystem import FileSystemService
from .services.firewall import FirewallTool
from .services.homeserver_config import generate_secrets, render_homeserver_config
from .services.interaction import InteractionService
from .services.network import NetworkService
from .services.packages import AptRepositoryService, PackageManager
from .services.service_manager import ServiceManager
from .services.users import UserManager


@dataclass
class HostServices:
    """Collaborators for every external tool a pipeline touches."""

    interaction: InteractionService
    filesystem: FileSystemService
    packages: PackageManager
    repositories: AptRepositoryService
    firewall: FirewallTool
    database: DatabaseClient
    services: ServiceManager
    containers: ContainerRuntime
    users: UserManager
    network: NetworkService
    downloads: DownloadService

    @classmethod
    def create(cls, logger, console: Console, requests_module, prompt_func=None) -> "HostServices":
        run_cmd = CommandRunner(logger=logger).run
        filesystem = FileSystemService(logger=logger, console=console)
        return cls(
            interaction=InteractionService(logger=logger, console=console, prompt_func=prompt_func),
            filesystem=filesystem,
            packages=PackageManager(logger=logger, run_cmd=run_cmd),
            repositories=AptRepositoryService(logger=logger, run_cmd=run_cmd, filesystem_service=filesystem),
            firewall=FirewallTool(logger=logger, run_cmd=run_cmd),
            database=DatabaseClient(logger=logger, console=console, run_cmd=run_cmd),
            services=ServiceManager(logger=logger, console=console, run_cmd=run_cmd),
            containers=ContainerRuntime(logger=logger, console=console, run_cmd=run_cmd),
            users=UserManager(logger=logger, run_cmd=run_cmd),
            network=NetworkService(logger=logger, run_cmd=run_cmd),
            downloads=DownloadService(
                logger=logger,
                console=console,
                requests_module=requests_module,
                filesystem_service=filesystem,
            ),
        )


class Pipeline:
    name = ""
    intro = ""

    def __init__(self, services: HostServices, settings: ProvisionerSettings, console: Console, logger):
        self.host = services
        self.settings = settings
        self.console = console
        self.logger = logger

    def steps(self) -> List[Step]:
        raise NotImplementedError

    def artifacts(self, session: ProvisioningSession) -> Dict[str, str]:
        return {}

    def ok(self, message: str):
        self.console.print(f"[green][OK][/green] {message}")

    def info(self, message: str):
        self.console.print(f"[cyan][INFO][/cyan] {message}")


class HomeserverPipeline(Pipeline):
    """Synapse homeserver with PostgreSQL on the local host."""

    name = "homeserver"
    intro = (
        "This will install and configure:\n"
        "  - Matrix Synapse homeserver\n"
        "  - System updates and a UFW firewall\n"
        "  - PostgreSQL database server\n"
        "  - The user registration script\n\n"
        "You will be prompted for a system user, the 'synapse' database password "
        "and the Matrix server name."
    )

    def steps(self) -> List[Step]:
        S = ProvisionerState
        return [
            Step("update_upgrade", "Updating and upgrading system...", self.update_upgrade, S.UPDATING),
            Step("configure_firewall", "Configuring firewall...", self.configure_firewall, S.FIREWALL_CONFIGURED),
            Step("create_user", "Creating new user and adding to sudo group...", self.create_user, S.USER_READY),
            Step("install_postgresql", "Installing PostgreSQL...", self.install_postgresql),
            Step("postgres_status", "PostgreSQL Status:", self.postgres_status),
            Step(
                "setup_postgres_db",
                "Setting up PostgreSQL user and database for Synapse...",
                self.setup_postgres_db,
                S.DATABASE_READY,
            ),
            Step("matrix_deps", "Installing Matrix Synapse dependencies...", self.matrix_deps),
            Step("download_matrix_key", "Downloading Matrix.org GPG key...", self.download_matrix_key),
            Step("add_matrix_repo", "Adding Matrix.org repository...", self.add_matrix_repo),
            Step(
                "apt_update_with_matrix",
                "Updating package list with Matrix repository...",
                self.apt_update_with_matrix,
            ),
            Step("prompt_server_name", "Matrix Server Name Configuration", self.prompt_server_name),
            Step(
                "prompt_matrix_config",
                "Please complete the Matrix Synapse installation configuration.",
                self.prompt_matrix_config,
            ),
            Step("install_matrix", "Installing Matrix Synapse...", self.install_matrix, S.PACKAGES_INSTALLED),
            Step(
                "ufw_allow_8008",
                f"Opening port {constants.SYNAPSE_PORT} in firewall...",
                self.ufw_allow_synapse_port,
            ),
            Step("get_lan_ip", "Detecting LAN address...", self.get_lan_ip),
            Step("generate_randoms", "Generating random secrets...", self.generate_randoms),
            Step(
                "configure_homeserver",
                "Configuring homeserver.yaml...",
                self.configure_homeserver,
                S.CONFIG_WRITTEN,
            ),
            Step("restart_matrix", "Restarting Matrix Synapse service...", self.restart_matrix, S.SERVICE_RUNNING),
            Step(
                "install_python_tools",
                "Installing Python dependencies and user registration script...",
                self.install_python_tools,
                S.TOOLS_INSTALLED,
            ),
            Step("summary", "Installation Summary", self.summary, S.SUMMARIZED),
        ]

    def artifacts(self, session: ProvisioningSession) -> Dict[str, str]:
        return {
            "homeserver_config": self.settings.homeserver_config_path,
            "registration_script": os.path.join(self.settings.work_dir, constants.REGISTRATION_SCRIPT_NAME),
        }

    def update_upgrade(self, session: ProvisioningSession):
        self.host.packages.update()
        self.host.packages.upgrade()
        self.ok("System updated")

    def configure_firewall(self, session: ProvisioningSession):
        FirewallRuleSet(self.host.firewall, constants.BASE_FIREWALL_RULES).ensure(session)
        self.ok("Firewall configured")

    def create_user(self, session: ProvisioningSession):
        username, exists = self.host.interaction.prompt_username(self.host.users.exists)
        session.username = username
        session.user_exists = exists

        if exists:
            self.info(f"Using existing user '{username}'")
            self.host.users.grant_sudo(username, check=False)
        else:
            self.host.users.create(username)
            self.host.users.grant_sudo(username)
            self.ok(f"User '{username}' has been created with sudo privileges.")

    def install_postgresql(self, session: ProvisioningSession):
        PackageSet(self.host.packages, constants.POSTGRES_PACKAGES).ensure(session)
        self.ok("PostgreSQL installed")

    def postgres_status(self, session: ProvisioningSession):
        self.host.services.show_status(constants.POSTGRES_SERVICE)

    def setup_postgres_db(self, session: ProvisioningSession):
        DatabaseRole(
            self.host.database,
            self.host.interaction,
            self.console,
            role=constants.SYNAPSE_DB_ROLE,
            database_name=constants.SYNAPSE_DB_NAME,
        ).ensure(session)

    def matrix_deps(self, session: ProvisioningSession):
        PackageSet(self.host.packages, constants.MATRIX_DEPENDENCY_PACKAGES).ensure(session)
        self.ok("Dependencies installed")

    def download_matrix_key(self, session: ProvisioningSession):
        self.host.downloads.download_file(
            constants.MATRIX_KEYRING_URL,
            constants.MATRIX_KEYRING_PATH,
            description="Matrix.org GPG key",
            mode=constants.KEYRING_MODE,
        )
        self.ok("GPG key downloaded")

    def add_matrix_repo(self, session: ProvisioningSession):
        codename = self.host.repositories.codename()
        line = (
            f"deb [signed-by={constants.MATRIX_KEYRING_PATH}] "
            f"{constants.MATRIX_REPO_URL} {codename} main"
        )
        self.host.repositories.add_source(constants.MATRIX_SOURCES_LIST, line)
        self.ok("Repository added")

    def apt_update_with_matrix(self, session: ProvisioningSession):
        self.host.packages.update()
        self.ok("Package list updated")

    def prompt_server_name(self, session: ProvisioningSession):
        self.console.print(
            "Enter your server name in the format: subdomain.domain.com\n"
            "This should match the domain you will use with your reverse proxy.\n"
            "Example: matrix.example.com"
        )
        session.server_name = self.host.interaction.prompt_server_name()
        self.ok(f"Server name set to: {session.server_name}")

    def prompt_matrix_config(self, session: ProvisioningSession):
        self.console.print(f"Set server name to: [green]{session.server_name}[/green]")
        self.host.interaction.pause("Press Enter when ready to proceed")

    def install_matrix(self, session: ProvisioningSession):
        PackageSet(self.host.packages, constants.MATRIX_PACKAGES).ensure(session)
        self.ok("Matrix Synapse installed")

    def ufw_allow_synapse_port(self, session: ProvisioningSession):
        FirewallRuleSet(self.host.firewall, [constants.SYNAPSE_PORT], enable=False).ensure(session)
        self.ok(f"Port {constants.SYNAPSE_PORT} opened")

    def get_lan_ip(self, session: ProvisioningSession):
        session.lan_ip = self.host.network.detect_lan_ip()
        self.ok(f"LAN address: {session.lan_ip}")

    def generate_randoms(self, session: ProvisioningSession):
        session.secrets = generate_secrets()
        self.ok("Secrets generated")

    def configure_homeserver(self, session: ProvisioningSession):
        config_file = ConfigFile(
            self.host.filesystem,
            self.settings.homeserver_config_path,
            render_homeserver_config,
        )
        backup_path = config_file.ensure(session)
        if backup_path:
            self.info(f"Existing config backed up to {backup_path}")
        self.ok("Homeserver configured")

    def restart_matrix(self, session: ProvisioningSession):
        Service(self.host.services, constants.SYNAPSE_SERVICE, restart=True).ensure(session)

    def install_python_tools(self, session: ProvisioningSession):
        PackageSet(self.host.packages, constants.PYTHON_TOOL_PACKAGES).ensure(session)
        self.host.packages.pip_install(constants.PYTHON_TOOL_PIP_PACKAGES)
        script_path = os.path.join(self.settings.work_dir, constants.REGISTRATION_SCRIPT_NAME)
        self.host.downloads.download_file(
            self.settings.registration_script_url,
            script_path,
            description="User registration script",
            mode=constants.SCRIPT_MODE,
        )
        self.ok("Python tools and registration script installed")
        return script_path

    def summary(self, session: ProvisioningSession):
        table = Table(show_header=False, box=None)
        table.add_column(style="bold cyan")
        table.add_column()
        table.add_row("System user", f"{session.username} (sudo)")
        table.add_row("Firewall", f"UFW active, SSH and {constants.SYNAPSE_PORT} open")
        table.add_row("Database", f"PostgreSQL role and database '{constants.SYNAPSE_DB_NAME}'")
        table.add_row("Server name", str(session.server_name))
        table.add_row("LAN IP", str(session.lan_ip))
        table.add_row("Config", self.settings.homeserver_config_path)
        self.console.print(table)

        address = f"http://{session.lan_ip}:{constants.SYNAPSE_PORT}"
        self.console.print("\n[yellow]Next Steps:[/yellow]")
        self.console.print(
            f"  1. Create users with: [cyan]sudo python3 {constants.REGISTRATION_SCRIPT_NAME} "
            f'-c "{self.settings.homeserver_config_path}"[/cyan]'
        )
        self.console.print(f"  2. Access your server with a Matrix client via: [cyan]{address}[/cyan]")
        self.console.print(
            f"  3. Proxy [cyan]{session.server_name}[/cyan] to [cyan]{address}[/cyan] "
            "and secure it with TLS"
        )
        self.console.print("  PostgreSQL shell: [cyan]sudo -u postgres psql[/cyan]")
        self.ok("Installation process completed!")


class AdminPanelPipeline(Pipeline):
    """Docker engine plus the Synapse Admin web panel container."""

    name = "admin-panel"
    intro = (
        "This will install and configure:\n"
        "  - Docker Engine and the Compose plugin\n"
        "  - The Synapse Admin web interface"
    )

    def steps(self) -> List[Step]:
        S = ProvisionerState
        return [
            Step("close_processes", "Closing conflicting processes...", self.close_processes),
            Step("updating_package_list", "Updating package list...", self.updating_package_list, S.UPDATING),
            Step("installing_prerequisites", "Installing prerequisites...", self.installing_prerequisites),
            Step("setting_up_gpg_key", "Setting up Docker GPG key...", self.setting_up_gpg_key),
            Step("adding_docker_repository", "Adding Docker repository...", self.adding_docker_repository),
            Step(
                "updating_with_docker_repo",
                "Updating package list with Docker repository...",
                self.updating_with_docker_repo,
            ),
            Step("installing_docker", "Installing Docker...", self.installing_docker, S.PACKAGES_INSTALLED),
            Step("starting_docker", "Starting Docker...", self.starting_docker, S.SERVICE_RUNNING),
            Step("checking_docker_status", "Checking Docker status...", self.checking_docker_status),
            Step(
                "deploying_synapse_admin",
                "Deploying Synapse Admin container...",
                self.deploying_synapse_admin,
                S.CONTAINER_RUNNING,
            ),
            Step("summary", "Installation Summary", self.summary, S.SUMMARIZED),
        ]

    def artifacts(self, session: ProvisioningSession) -> Dict[str, str]:
        return {"admin_panel_url": f"http://{session.lan_ip}:{self.settings.admin_host_port}"}

    def close_processes(self, session: ProvisioningSession):
        self.host.services.stop(constants.DOCKER_SERVICE)
        for package in constants.DOCKER_CONFLICTING_PACKAGES:
            self.host.packages.remove(package)
        self.ok("Conflicting processes closed")

    def updating_package_list(self, session: ProvisioningSession):
        self.host.packages.update()
        self.ok("Package list updated")

    def installing_prerequisites(self, session: ProvisioningSession):
        PackageSet(self.host.packages, constants.DOCKER_PREREQUISITE_PACKAGES).ensure(session)
        self.ok("Prerequisites installed")

    def setting_up_gpg_key(self, session: ProvisioningSession):
        self.host.repositories.prepare_keyring_dir(constants.DOCKER_KEYRING_DIR, constants.DIR_MODE)
        distribution = self.host.repositories.distribution_id()
        self.host.downloads.download_file(
            f"{constants.DOCKER_REPO_BASE_URL}/{distribution}/gpg",
            constants.DOCKER_KEYRING_PATH,
            description="Docker GPG key",
            mode=constants.KEYRING_MODE,
        )
        self.ok("GPG key configured")

    def adding_docker_repository(self, session: ProvisioningSession):
        repositories = self.host.repositories
        line = (
            f"deb [arch={repositories.architecture()} signed-by={constants.DOCKER_KEYRING_PATH}] "
            f"{constants.DOCKER_REPO_BASE_URL}/{repositories.distribution_id()} "
            f"{repositories.codename()} stable"
        )
        repositories.add_source(constants.DOCKER_SOURCES_LIST, line)
        self.ok("Docker repository added")

    def updating_with_docker_repo(self, session: ProvisioningSession):
        self.host.packages.update()
        self.ok("Package list updated")

    def installing_docker(self, session: ProvisioningSession):
        PackageSet(self.host.packages, constants.DOCKER_PACKAGES).ensure(session)
        self.ok("Docker installed successfully")

    def starting_docker(self, session: ProvisioningSession):
        Service(self.host.services, constants.DOCKER_SERVICE).ensure(session)
        self.ok("Docker service started")

    def checking_docker_status(self, session: ProvisioningSession):
        self.host.services.show_status(constants.DOCKER_SERVICE, lines=0)
        self.host.containers.validate_environment()

    def deploying_synapse_admin(self, session: ProvisioningSession) -> Optional[str]:
        container_id = Container(
            self.host.containers,
            self.settings.admin_image,
            self.settings.admin_host_port,
            self.settings.admin_container_port,
        ).ensure(session)
        self.ok("Synapse Admin container deployed")
        return container_id

    def summary(self, session: ProvisioningSession):
        if session.lan_ip is None:
            session.lan_ip = self.host.network.detect_lan_ip()
        address = f"http://{session.lan_ip}:{self.settings.admin_host_port}"
        self.console.print("[yellow]Next steps:[/yellow]")
        self.console.print(f"  1. Access Synapse Admin at [cyan]{address}[/cyan]")
        self.console.print(
            f"  2. Log in with an admin account (create one with [cyan]sudo python3 "
            f'{constants.REGISTRATION_SCRIPT_NAME} -c "{self.settings.homeserver_config_path}"[/cyan])'
        )
        self.console.print("  3. Connect to your Matrix homeserver using host address:port")
        self.console.print("\n[yellow]Useful commands:[/yellow]")
        self.console.print("  - Check Docker status: [cyan]sudo systemctl status docker[/cyan]")
        self.console.print("  - View containers: [cyan]sudo docker ps[/cyan]")
        self.ok("Installation process completed!")


PIPELINES = {
    HomeserverPipeline.name: HomeserverPipeline,
    AdminPanelPipeline.name: AdminPanelPipeline,
}
