"""Configuration loader for matrixprovisioner."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from matrixprovisioner.errors import ProvisionerError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "verbose",
        "log_file",
        "dry_run",
        "work_dir",
        "manifest_file",
        "require_root",
        "homeserver_config_path",
        "registration_script_url",
        "admin_image",
        "admin_port",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ProvisionerError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ProvisionerError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ProvisionerError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ProvisionerError(f"Unknown configuration keys: {unknown_list}")

        return parsed
