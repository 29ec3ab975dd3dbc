"""Synapse homeserver.yaml rendering and secret generation."""

import json
import secrets
import string

import yaml

from matrixprovisioner.constants import (
    SYNAPSE_DB_NAME,
    SYNAPSE_DB_ROLE,
    SYNAPSE_PORT,
    SYNAPSE_SECRET_LENGTH,
)
from matrixprovisioner.errors import ConfigWriteError
from matrixprovisioner.models import GeneratedSecrets, ProvisioningSession

SECRET_ALPHABET = string.ascii_letters + string.digits

HOMESERVER_TEMPLATE = """\
#
# [1] https://docs.ansible.com/ansible/latest/reference_appendices/YAMLSyntax.html
#
# For more information on how to configure Synapse, including a complete accounting of
# each option, go to docs/usage/configuration/config_documentation.md or
# https://element-hq.github.io/synapse/latest/usage/configuration/config_documentation.html
#
server_name: {server_name}
pid_file: "/var/run/matrix-synapse.pid"
listeners:
  - port: {port}
    tls: false
    type: http
    x_forwarded: true
    bind_addresses: ['127.0.0.1', '{lan_ip}']
    resources:
      - names: [client, federation]
        compress: false
database:
  name: psycopg2
  args:
    user: {db_user}
    password: {db_password}
    dbname: {db_name}
    host: localhost
    port: 5432
    cp_min: 5
    cp_max: 10
log_config: "/etc/matrix-synapse/log.yaml"
media_store_path: /var/lib/matrix-synapse/media
signing_key_path: "/etc/matrix-synapse/homeserver.signing.key"
trusted_key_servers:
  - server_name: "matrix.org"

macaroon_secret_key: {macaroon_secret_key}
form_secret: {form_secret}

enable_registration: false
enable_registration_without_verification: false
registration_shared_secret: {registration_shared_secret}
"""


def generate_secret(length: int = SYNAPSE_SECRET_LENGTH) -> str:
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(length))


def generate_secrets(length: int = SYNAPSE_SECRET_LENGTH) -> GeneratedSecrets:
    return GeneratedSecrets(
        macaroon_secret_key=generate_secret(length),
        form_secret=generate_secret(length),
        registration_shared_secret=generate_secret(length),
    )


def _yaml_string(value: str) -> str:
    # A JSON string literal is a valid double-quoted YAML scalar. Non-ASCII stays
    # literal so astral characters are not split into surrogate escapes.
    return json.dumps(value, ensure_ascii=False)


def render_homeserver_config(session: ProvisioningSession) -> str:
    missing = [
        name
        for name in ("server_name", "lan_ip", "db_password", "secrets")
        if getattr(session, name) is None
    ]
    if missing:
        raise ConfigWriteError(f"Cannot render homeserver.yaml; missing values: {', '.join(missing)}")

    content = HOMESERVER_TEMPLATE.format(
        server_name=_yaml_string(session.server_name),
        port=SYNAPSE_PORT,
        lan_ip=session.lan_ip,
        db_user=SYNAPSE_DB_ROLE,
        db_password=_yaml_string(session.db_password),
        db_name=SYNAPSE_DB_NAME,
        macaroon_secret_key=session.secrets.macaroon_secret_key,
        form_secret=session.secrets.form_secret,
        registration_shared_secret=session.secrets.registration_shared_secret,
    )

    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigWriteError(f"Rendered homeserver.yaml is not valid YAML: {exc}") from exc
    if parsed.get("server_name") != session.server_name:
        raise ConfigWriteError("Rendered homeserver.yaml does not carry the requested server name.")
    if parsed["database"]["args"].get("password") != session.db_password:
        raise ConfigWriteError("Rendered homeserver.yaml does not carry the database password verbatim.")

    return content
