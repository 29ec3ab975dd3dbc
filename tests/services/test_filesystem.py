from datetime import datetime

import pytest
from rich.console import Console

from matrixprovisioner.errors import ConfigWriteError
from matrixprovisioner.services.filesystem import FileSystemService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


def _service():
    return FileSystemService(
        logger=DummyLogger(),
        console=Console(record=True),
        now_func=lambda: datetime(2024, 3, 9, 14, 5, 7),
    )


def test_backup_file_copies_with_timestamp_suffix(tmp_path):
    target = tmp_path / "homeserver.yaml"
    target.write_text("old: true\n", encoding="utf-8")

    backup = _service().backup_file(str(target))

    assert backup == f"{target}.backup.20240309_140507"
    assert (tmp_path / "homeserver.yaml.backup.20240309_140507").read_text(encoding="utf-8") == "old: true\n"


def test_backup_file_returns_none_when_source_missing(tmp_path):
    assert _service().backup_file(str(tmp_path / "homeserver.yaml")) is None
    assert list(tmp_path.iterdir()) == []


def test_write_text_keeps_unix_newlines(tmp_path):
    target = tmp_path / "homeserver.yaml"
    service = _service()

    service.write_text(str(target), "a: 1\nb: 2\n")

    assert target.read_bytes() == b"a: 1\nb: 2\n"
    assert service.read_text(str(target)) == "a: 1\nb: 2\n"


def test_write_text_raises_config_write_error(tmp_path):
    with pytest.raises(ConfigWriteError, match="Could not write"):
        _service().write_text(str(tmp_path / "missing" / "homeserver.yaml"), "a: 1\n")
