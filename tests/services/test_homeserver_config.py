import json

import pytest
import yaml

import matrixprovisioner.services.homeserver_config as homeserver_config_module
from matrixprovisioner.errors import ConfigWriteError
from matrixprovisioner.models import GeneratedSecrets, ProvisioningSession
from matrixprovisioner.services.homeserver_config import (
    SECRET_ALPHABET,
    generate_secret,
    generate_secrets,
    render_homeserver_config,
)


def _session(**overrides):
    values = {
        "username": "alice",
        "db_password": "Secr3t!",
        "server_name": "matrix.example.com",
        "lan_ip": "192.168.1.50",
        "secrets": GeneratedSecrets(
            macaroon_secret_key="M" * 32,
            form_secret="F" * 32,
            registration_shared_secret="R" * 32,
        ),
    }
    values.update(overrides)
    return ProvisioningSession(**values)


def test_generate_secret_is_alphanumeric_of_requested_length():
    secret = generate_secret()

    assert len(secret) == 32
    assert set(secret) <= set(SECRET_ALPHABET)
    assert len(generate_secret(8)) == 8


def test_generate_secrets_are_independent():
    generated = generate_secrets()

    values = {generated.macaroon_secret_key, generated.form_secret, generated.registration_shared_secret}
    assert len(values) == 3
    assert generated.macaroon_secret_key not in repr(generated)


def test_render_places_session_values():
    content = render_homeserver_config(_session())

    assert 'server_name: "matrix.example.com"\n' in content
    assert "    bind_addresses: ['127.0.0.1', '192.168.1.50']\n" in content
    assert '    password: "Secr3t!"\n' in content
    assert f"macaroon_secret_key: {'M' * 32}\n" in content
    assert f"form_secret: {'F' * 32}\n" in content
    assert f"registration_shared_secret: {'R' * 32}\n" in content
    assert "enable_registration: false\n" in content

    parsed = yaml.safe_load(content)
    assert parsed["listeners"][0]["port"] == 8008
    assert parsed["listeners"][0]["resources"][0]["names"] == ["client", "federation"]
    assert parsed["database"]["name"] == "psycopg2"
    assert parsed["database"]["args"]["user"] == "synapse"
    assert parsed["database"]["args"]["dbname"] == "synapse"
    assert parsed["database"]["args"]["cp_min"] == 5
    assert parsed["database"]["args"]["cp_max"] == 10


def test_render_keeps_yaml_special_characters_in_password():
    password = "p#ss: 'x' \"y\" \\z"

    parsed = yaml.safe_load(render_homeserver_config(_session(db_password=password)))

    assert parsed["database"]["args"]["password"] == password


def test_render_keeps_astral_characters_in_password():
    password = "K\u00e4se\U0001F600pw"

    content = render_homeserver_config(_session(db_password=password))

    assert f"    password: \"{password}\"\n" in content
    assert "\\ud83d" not in content
    assert yaml.safe_load(content)["database"]["args"]["password"] == password


def test_render_rejects_password_that_does_not_survive_parsing(monkeypatch):
    monkeypatch.setattr(homeserver_config_module, "_yaml_string", json.dumps)

    with pytest.raises(ConfigWriteError, match="database password"):
        render_homeserver_config(_session(db_password="K\u00e4se\U0001F600pw"))


def test_render_requires_collected_values():
    with pytest.raises(ConfigWriteError, match="lan_ip"):
        render_homeserver_config(_session(lan_ip=None))
