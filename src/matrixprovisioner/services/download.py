"""Download service with progress reporting."""

import os
from typing import Optional
from urllib.parse import urlparse

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from matrixprovisioner.errors import DownloadError
from matrixprovisioner.errors_catalog import actionable_error


class DownloadService:
    """Fetches keyrings and helper scripts over HTTPS."""

    def __init__(self, logger, console, requests_module, filesystem_service, timeout: float = 60.0):
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.filesystem_service = filesystem_service
        self.timeout = timeout

    def enforce_https(self, url: str, label: str):
        if urlparse(url).scheme.lower() != "https":
            raise DownloadError(actionable_error("insecure_http", label=label))

    def download_file(
        self,
        url: str,
        dest_path: str,
        description: str = "Downloading...",
        mode: Optional[int] = None,
    ) -> str:
        self.logger.info("Downloading %s to %s", url, dest_path)
        self.enforce_https(url, description)
        opened = False

        try:
            with self.requests.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("Content-Length", 0))

                parent = os.path.dirname(dest_path)
                if parent:
                    os.makedirs(parent, exist_ok=True)

                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    "•",
                    TimeElapsedColumn(),
                    console=self.console,
                ) as progress:
                    task = progress.add_task(f"[cyan]{description}", total=total_size or None)
                    with open(dest_path, "wb") as file_obj:
                        opened = True
                        for chunk in response.iter_content(chunk_size=8192):
                            if not chunk:
                                continue
                            file_obj.write(chunk)
                            progress.update(task, advance=len(chunk))
        except self.requests.RequestException as exc:
            if opened:
                self._discard_partial(dest_path)
            raise DownloadError(f"Download failed for {description}: {exc}") from exc
        except OSError as exc:
            if opened:
                self._discard_partial(dest_path)
            raise DownloadError(f"Could not save {dest_path}: {exc}") from exc

        if mode is not None:
            self.filesystem_service.set_permissions(dest_path, mode)
        return dest_path

    def _discard_partial(self, dest_path: str):
        try:
            os.remove(dest_path)
        except FileNotFoundError:
            return
        except OSError as exc:
            self.logger.warning("Could not remove partial download %s: %s", dest_path, exc)
