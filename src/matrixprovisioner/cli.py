import logging
import os

import click
from rich.logging import RichHandler

from .core import MatrixProvisioner
from .errors import ProvisionerError
from .services.config_loader import ConfigLoader

DEFAULT_CONFIG_NAME = ".matrixprovisioner.yml"


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


_COMMON_OPTIONS = [
    click.option(
        "--config",
        required=False,
        type=click.Path(),
        help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_NAME} if present.",
    ),
    click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging"),
    click.option("--log-file", type=click.Path(), help="Path to log file"),
    click.option(
        "--dry-run",
        is_flag=True,
        default=None,
        help="Print the ordered stage plan without touching the host.",
    ),
    click.option(
        "--work-dir",
        required=False,
        type=click.Path(file_okay=False),
        help="Directory for downloaded tools and the run manifest (default: current directory).",
    ),
    click.option(
        "--manifest-file",
        required=False,
        type=click.Path(),
        help="Path of the run manifest JSON (default: <work-dir>/provision-manifest.json).",
    ),
    click.option(
        "--skip-root-check",
        is_flag=True,
        default=None,
        help="Do not refuse to run without root privileges.",
    ),
    click.option(
        "--homeserver-config-path",
        required=False,
        type=click.Path(dir_okay=False),
        help="Location of homeserver.yaml (default: /etc/matrix-synapse/homeserver.yaml).",
    ),
]


def common_options(func):
    for option in reversed(_COMMON_OPTIONS):
        func = option(func)
    return func


def _load_config(config):
    config_loader = ConfigLoader()
    resolved_config = config
    if resolved_config is None:
        default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_NAME)
        if os.path.exists(default_config_path):
            resolved_config = default_config_path
    return config_loader.load(resolved_config)


def _configure_logging(verbose, log_file):
    logger = logging.getLogger("matrixprovisioner")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _run_pipeline(pipeline, options, extra_keys=()):
    try:
        config_values = _load_config(options.pop("config"))
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(options["verbose"], config_values, "verbose", default=False))
    log_file = _resolve_option(options["log_file"], config_values, "log_file")
    _configure_logging(verbose, log_file)

    kwargs = {
        "pipeline": pipeline,
        "dry_run": bool(_resolve_option(options["dry_run"], config_values, "dry_run", default=False)),
        "work_dir": _resolve_option(options["work_dir"], config_values, "work_dir"),
        "manifest_file": _resolve_option(options["manifest_file"], config_values, "manifest_file"),
        "require_root": bool(
            _resolve_option(
                False if options["skip_root_check"] else None,
                config_values,
                "require_root",
                default=True,
            )
        ),
        "homeserver_config_path": _resolve_option(
            options["homeserver_config_path"],
            config_values,
            "homeserver_config_path",
        ),
    }
    for key in extra_keys:
        kwargs[key] = _resolve_option(options[key], config_values, key)

    try:
        provisioner = MatrixProvisioner(**kwargs)
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(provisioner.run())


@click.group()
@click.version_option(package_name="matrixprovisioner")
def main():
    """Provision a Matrix Synapse homeserver and its admin panel on a Debian-family host."""


@main.command()
@common_options
@click.option(
    "--registration-script-url",
    required=False,
    help="HTTPS URL of register_new_matrix_user.py.",
)
def homeserver(**options):
    """Install PostgreSQL and Synapse, write homeserver.yaml and start the service."""
    _run_pipeline("homeserver", options, extra_keys=("registration_script_url",))


@main.command(name="admin-panel")
@common_options
@click.option("--admin-image", required=False, help="Synapse Admin container image.")
@click.option("--admin-port", required=False, type=int, default=None, help="Host port for the admin panel (default: 8080).")
def admin_panel(**options):
    """Install Docker and run the Synapse Admin web panel container."""
    _run_pipeline("admin-panel", options, extra_keys=("admin_image", "admin_port"))


if __name__ == "__main__":
    main()
