import subprocess
from datetime import datetime

import pytest
from rich.console import Console

import matrixprovisioner.services.database as database_module
from matrixprovisioner.errors import FirewallError, PackageError
from matrixprovisioner.models import ProvisioningSession
from matrixprovisioner.resources import ConfigFile, Container, DatabaseRole, FirewallRuleSet, PackageSet
from matrixprovisioner.services.database import DatabaseClient
from matrixprovisioner.services.filesystem import FileSystemService
from matrixprovisioner.services.interaction import InteractionService
from matrixprovisioner.services.packages import PackageManager


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class ScriptedPrompt:
    def __init__(self, answers):
        self.answers = list(answers)

    def __call__(self, text, hide_input=False):
        return self.answers.pop(0)


class FakePostgres:
    """psql stand-in that keeps a set of roles and databases."""

    def __init__(self, roles=(), databases=()):
        self.roles = set(roles)
        self.databases = set(databases)
        self.statements = []

    def __call__(self, cmd, check=True, capture_output=False, input_text=None, error_cls=None, **_kwargs):
        if "-c" in cmd:
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
        sql = input_text or ""
        if sql.startswith("SELECT 1 FROM pg_roles"):
            return subprocess.CompletedProcess(cmd, 0, stdout="1\n" if "synapse" in self.roles else "", stderr="")

        self.statements.append(sql)
        if sql.startswith("CREATE ROLE"):
            self.roles.add("synapse")
        elif sql.startswith("CREATE DATABASE"):
            self.databases.add("synapse")
        elif sql.startswith("DROP ROLE"):
            self.roles.discard("synapse")
        elif sql.startswith("DROP DATABASE"):
            self.databases.discard("synapse")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def count(self, prefix):
        return sum(1 for statement in self.statements if statement.startswith(prefix))


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(database_module.time, "sleep", lambda _seconds: None)


def _database_role(postgres, answers):
    console = Console(record=True, width=120)
    interaction = InteractionService(DummyLogger(), console, prompt_func=ScriptedPrompt(answers))
    database = DatabaseClient(DummyLogger(), console, postgres)
    return DatabaseRole(database, interaction, console, role="synapse", database_name="synapse")


def test_database_role_created_on_fresh_cluster():
    postgres = FakePostgres()
    session = ProvisioningSession()

    outcome = _database_role(postgres, ["pw1", "pw1"]).ensure(session)

    assert outcome == "created"
    assert session.db_password == "pw1"
    assert postgres.count("CREATE ROLE") == 1
    assert postgres.count("CREATE DATABASE") == 1
    assert postgres.databases == {"synapse"}


def test_database_role_keep_path_only_alters_password():
    postgres = FakePostgres(roles={"synapse"}, databases={"synapse"})
    session = ProvisioningSession()

    outcome = _database_role(postgres, ["n", "newpw", "newpw"]).ensure(session)

    assert outcome == "updated"
    assert postgres.count("ALTER ROLE") == 1
    assert postgres.count("CREATE DATABASE") == 0
    assert postgres.count("CREATE ROLE") == 0
    assert postgres.count("DROP") == 0
    assert "'newpw'" in postgres.statements[0]


def test_database_role_drop_path_recreates_everything():
    postgres = FakePostgres(roles={"synapse"}, databases={"synapse"})

    outcome = _database_role(postgres, ["y", "pw2", "pw2"]).ensure(ProvisioningSession())

    assert outcome == "created"
    assert [statement.split()[0:2] for statement in postgres.statements] == [
        ["DROP", "DATABASE"],
        ["DROP", "ROLE"],
        ["CREATE", "ROLE"],
        ["CREATE", "DATABASE"],
    ]


def test_config_file_backs_up_once_and_writes_rendered_bytes(tmp_path):
    target = tmp_path / "homeserver.yaml"
    target.write_text("server_name: old\n", encoding="utf-8")
    filesystem = FileSystemService(
        DummyLogger(),
        Console(record=True),
        now_func=lambda: datetime(2024, 3, 9, 14, 5, 7),
    )
    rendered = "server_name: \"matrix.example.com\"\nenable_registration: false\n"

    backup = ConfigFile(filesystem, str(target), lambda _session: rendered).ensure(ProvisioningSession())

    backups = sorted(path.name for path in tmp_path.iterdir() if ".backup." in path.name)
    assert backups == ["homeserver.yaml.backup.20240309_140507"]
    assert backup == str(tmp_path / backups[0])
    assert (tmp_path / backups[0]).read_text(encoding="utf-8") == "server_name: old\n"
    assert target.read_bytes() == rendered.encode("utf-8")


def test_config_file_without_previous_file_has_no_backup(tmp_path):
    target = tmp_path / "homeserver.yaml"
    filesystem = FileSystemService(DummyLogger(), Console(record=True))

    backup = ConfigFile(filesystem, str(target), lambda _session: "a: 1\n").ensure(ProvisioningSession())

    assert backup is None
    assert [path.name for path in tmp_path.iterdir()] == ["homeserver.yaml"]


class FakeDpkg:
    def __init__(self, installed, installable=True):
        self.installed = set(installed)
        self.installable = installable
        self.install_calls = []

    def __call__(self, cmd, check=True, capture_output=False, **_kwargs):
        if cmd[0] == "dpkg-query":
            installed = cmd[-1] in self.installed
            return subprocess.CompletedProcess(
                cmd, 0 if installed else 1, stdout="install ok installed" if installed else "", stderr=""
            )
        self.install_calls.append(cmd[4:])
        if self.installable:
            self.installed.update(cmd[4:])
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


def test_package_set_installs_only_missing_packages():
    dpkg = FakeDpkg(installed={"postgresql"})
    resource = PackageSet(PackageManager(DummyLogger(), dpkg), ["postgresql", "postgresql-contrib"])

    installed = resource.ensure(ProvisioningSession())

    assert installed == ["postgresql-contrib"]
    assert dpkg.install_calls == [["postgresql-contrib"]]


def test_package_set_second_run_installs_nothing():
    dpkg = FakeDpkg(installed={"postgresql", "postgresql-contrib"})
    resource = PackageSet(PackageManager(DummyLogger(), dpkg), ["postgresql", "postgresql-contrib"])

    assert resource.ensure(ProvisioningSession()) == []
    assert dpkg.install_calls == []


def test_package_set_verify_fails_when_install_did_not_stick():
    dpkg = FakeDpkg(installed=set(), installable=False)
    resource = PackageSet(PackageManager(DummyLogger(), dpkg), ["matrix-synapse-py3"])

    with pytest.raises(PackageError, match="matrix-synapse-py3"):
        resource.ensure(ProvisioningSession())


class FakeFirewall:
    def __init__(self, active=False, enables=True):
        self.active = active
        self.enables = enables
        self.enabled_calls = 0
        self.rules = []

    def is_active(self):
        return self.active

    def enable(self):
        self.enabled_calls += 1
        self.active = self.enables

    def allow(self, rule):
        self.rules.append(rule)


def test_firewall_rule_set_enables_once_and_allows_rules():
    firewall = FakeFirewall(active=False)

    FirewallRuleSet(firewall, ["ssh"]).ensure(ProvisioningSession())
    FirewallRuleSet(firewall, [8008], enable=False).ensure(ProvisioningSession())

    assert firewall.enabled_calls == 1
    assert firewall.rules == ["ssh", "8008"]


def test_firewall_rule_set_verify_detects_inactive_firewall():
    with pytest.raises(FirewallError):
        FirewallRuleSet(FakeFirewall(active=False, enables=False), ["ssh"]).ensure(ProvisioningSession())


def test_container_apply_starts_a_new_instance_each_time():
    started = []

    class FakeRuntime:
        def run(self, image, host_port, container_port):
            started.append((image, host_port, container_port))
            return f"container-{len(started)}"

    container = Container(FakeRuntime(), "awesometechnologies/synapse-admin", 8080, 80)

    assert container.ensure(ProvisioningSession()) == "container-1"
    assert container.ensure(ProvisioningSession()) == "container-2"
    assert started == [("awesometechnologies/synapse-admin", 8080, 80)] * 2
