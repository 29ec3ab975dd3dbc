"""APT package and repository management."""

import os
from typing import Callable, Dict, Iterable, List

from matrixprovisioner.errors import PackageError

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
DOCKER_DISTRIBUTIONS = ("debian", "ubuntu", "raspbian")


class PackageManager:
    """Wraps apt-get and dpkg-query."""

    def __init__(self, logger, run_cmd: Callable):
        self.logger = logger
        self.run_cmd = run_cmd

    def is_installed(self, name: str) -> bool:
        result = self.run_cmd(
            ["dpkg-query", "-W", "-f=${Status}", name],
            check=False,
            capture_output=True,
        )
        return result.returncode == 0 and "install ok installed" in (result.stdout or "")

    def missing(self, names: Iterable[str]) -> List[str]:
        return [name for name in names if not self.is_installed(name)]

    def update(self):
        self.run_cmd(
            ["apt-get", "update", "-qq"],
            capture_output=True,
            env=APT_ENV,
            error_cls=PackageError,
        )

    def upgrade(self):
        self.run_cmd(
            ["apt-get", "upgrade", "-qq", "-y"],
            capture_output=True,
            env=APT_ENV,
            error_cls=PackageError,
        )

    def install(self, names: Iterable[str]):
        names = list(names)
        if not names:
            return
        self.logger.info("Installing packages: %s", ", ".join(names))
        self.run_cmd(
            ["apt-get", "install", "-qq", "-y"] + names,
            capture_output=True,
            env=APT_ENV,
            error_cls=PackageError,
        )

    def remove(self, name: str) -> bool:
        """Remove a package. Returns False when apt-get refused, e.g. it was never installed."""
        result = self.run_cmd(
            ["apt-get", "remove", "-yqq", name],
            check=False,
            capture_output=True,
            env=APT_ENV,
        )
        if result.returncode != 0:
            self.logger.debug("Package %s was not removed (exit %s).", name, result.returncode)
            return False
        return True

    def pip_install(self, names: Iterable[str]) -> bool:
        result = self.run_cmd(
            ["pip", "install", "--quiet"] + list(names),
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            self.logger.warning(
                "pip install %s failed (exit %s); continuing.",
                " ".join(names),
                result.returncode,
            )
            return False
        return True


class AptRepositoryService:
    """Adds signed third-party apt sources."""

    def __init__(self, logger, run_cmd: Callable, filesystem_service, os_release_path: str = "/etc/os-release"):
        self.logger = logger
        self.run_cmd = run_cmd
        self.filesystem_service = filesystem_service
        self.os_release_path = os_release_path

    def read_os_release(self) -> Dict[str, str]:
        values: Dict[str, str] = {}
        try:
            with open(self.os_release_path, "r", encoding="utf-8") as file_obj:
                for line in file_obj:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key] = value.strip().strip('"').strip("'")
        except OSError as exc:
            raise PackageError(f"Could not read {self.os_release_path}: {exc}") from exc
        return values

    def codename(self) -> str:
        release = self.read_os_release()
        codename = release.get("UBUNTU_CODENAME") or release.get("VERSION_CODENAME")
        if not codename:
            raise PackageError(f"Could not determine the distribution codename from {self.os_release_path}.")
        return codename

    def distribution_id(self) -> str:
        """Docker publishes repositories per distribution; derivatives map to their parent."""
        release = self.read_os_release()
        distribution = release.get("ID", "debian")
        if distribution in DOCKER_DISTRIBUTIONS:
            return distribution
        like = release.get("ID_LIKE", "").split()
        for parent in ("ubuntu", "debian"):
            if parent in like:
                return parent
        return distribution

    def architecture(self) -> str:
        result = self.run_cmd(
            ["dpkg", "--print-architecture"],
            capture_output=True,
            error_cls=PackageError,
        )
        return result.stdout.strip()

    def prepare_keyring_dir(self, path: str, mode: int):
        os.makedirs(path, exist_ok=True)
        self.filesystem_service.set_permissions(path, mode)

    def add_source(self, list_path: str, line: str):
        os.makedirs(os.path.dirname(list_path), exist_ok=True)
        self.filesystem_service.write_text(list_path, line + "\n", error_cls=PackageError)
        self.logger.info("Added apt source %s", list_path)
