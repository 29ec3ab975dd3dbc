"""Actionable error catalog for matrixprovisioner."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "root_required": {
        "what": "This command must be run as root.",
        "next": "Re-run it with `sudo`.",
    },
    "insecure_http": {
        "what": "{label} uses insecure HTTP.",
        "next": "Use an HTTPS URL for downloads.",
    },
    "database_not_ready": {
        "what": "PostgreSQL did not become ready after {attempts} attempts.",
        "next": "Check `systemctl status postgresql` and `journalctl -u postgresql`, then retry.",
    },
    "service_not_active": {
        "what": "Service '{service}' failed to start.",
        "next": "Inspect `journalctl -u {service}` and the configuration it loads, then retry.",
    },
    "port_in_use": {
        "what": "Host port {port} is already allocated.",
        "next": "Stop the container holding the port (`docker ps`) or pick another `--admin-port`.",
    },
    "config_write_failed": {
        "what": "Could not write {path}: {reason}",
        "next": "Check that the directory exists and is writable by the current user.",
    },
    "command_missing": {
        "what": "Required command not found: {command}.",
        "next": "Install it or run on a Debian-family host.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
