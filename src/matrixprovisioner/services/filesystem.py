"""Filesystem helpers for matrixprovisioner."""

import logging
import os
import shutil
from datetime import datetime
from typing import Callable, Optional, Type

from rich.console import Console

from matrixprovisioner.constants import BACKUP_TIMESTAMP_FORMAT
from matrixprovisioner.errors import ConfigWriteError, ProvisionerError
from matrixprovisioner.errors_catalog import actionable_error


class FileSystemService:
    """Encapsulates file side effects on the host."""

    def __init__(self, logger: logging.Logger, console: Console, now_func: Optional[Callable[[], datetime]] = None):
        self.logger = logger
        self.console = console
        self.now = now_func or datetime.now

    def set_permissions(self, path: str, mode: int):
        try:
            os.chmod(path, mode)
        except OSError as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def backup_path(self, path: str) -> str:
        return f"{path}.backup.{self.now().strftime(BACKUP_TIMESTAMP_FORMAT)}"

    def backup_file(self, path: str) -> Optional[str]:
        """Copy an existing file next to itself with a timestamp suffix.

        Two backups taken within the same second share a name; the later one wins.
        """
        if not os.path.isfile(path):
            return None

        destination = self.backup_path(path)
        try:
            shutil.copy2(path, destination)
        except OSError as exc:
            raise ConfigWriteError(
                actionable_error("config_write_failed", path=destination, reason=str(exc))
            ) from exc
        self.logger.info("Existing file backed up to %s", destination)
        return destination

    def write_text(self, path: str, content: str, error_cls: Type[ProvisionerError] = ConfigWriteError):
        try:
            with open(path, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
        except OSError as exc:
            raise error_cls(actionable_error("config_write_failed", path=path, reason=str(exc))) from exc

    def read_text(self, path: str) -> str:
        with open(path, "r", encoding="utf-8", newline="") as file_obj:
            return file_obj.read()
