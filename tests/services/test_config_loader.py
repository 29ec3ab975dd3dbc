import pytest

from matrixprovisioner.errors import ProvisionerError
from matrixprovisioner.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".matrixprovisioner.yml"
    config_file.write_text(
        "work_dir: /srv/matrix\nadmin_port: 8181\nrequire_root: false\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["work_dir"] == "/srv/matrix"
    assert loaded["admin_port"] == 8181
    assert loaded["require_root"] is False


def test_config_loader_returns_empty_for_no_path_and_empty_file(tmp_path):
    empty = tmp_path / "empty.yml"
    empty.write_text("", encoding="utf-8")

    loader = ConfigLoader()

    assert loader.load(None) == {}
    assert loader.load(str(empty)) == {}


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".matrixprovisioner.yml"
    config_file.write_text("unknown_key: true\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(ProvisionerError, match="Unknown configuration keys"):
        loader.load(str(config_file))


def test_config_loader_rejects_non_mapping_and_missing_file(tmp_path):
    config_file = tmp_path / "list.yml"
    config_file.write_text("- one\n- two\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(ProvisionerError, match="YAML mapping"):
        loader.load(str(config_file))
    with pytest.raises(ProvisionerError, match="Config file not found"):
        loader.load(str(tmp_path / "missing.yml"))
