import click
from rich.console import Console

from matrixprovisioner.errors import PackageError, ReadinessTimeoutError
from matrixprovisioner.services.stage_tracker import INTERRUPTED_EXIT_CODE, StageTracker


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


def _tracker():
    return StageTracker(DummyLogger(), Console(record=True, width=120))


def test_tracker_starts_at_startup_and_follows_enter():
    tracker = _tracker()

    assert tracker.current == "startup"
    tracker.enter("install_postgresql", "Installing PostgreSQL")
    tracker.enter("postgres_status")

    assert tracker.current == "postgres_status"
    output = tracker.console.export_text()
    assert "==> Installing PostgreSQL" in output
    assert "==> postgres_status" in output


def test_failure_report_uses_tool_exit_code():
    report = _tracker().failure_report("update_upgrade", PackageError("apt failed", exit_code=100))

    assert report.stage == "update_upgrade"
    assert report.cause == "PackageError"
    assert report.exit_code == 100
    assert "Failed at stage: update_upgrade (PackageError, exit code 100)" in report.render()


def test_failure_report_defaults_to_one_without_tool_code():
    report = _tracker().failure_report("setup_postgres_db", ReadinessTimeoutError("not ready"))

    assert report.exit_code == 1
    assert report.message == "not ready"


def test_failure_report_for_interrupts():
    tracker = _tracker()

    for cause in (KeyboardInterrupt(), click.Abort()):
        report = tracker.failure_report("startup", cause)
        assert report.exit_code == INTERRUPTED_EXIT_CODE == 130
        assert report.message == "Operation cancelled by user."


def test_failure_report_for_unexpected_errors():
    report = _tracker().failure_report("summary", ValueError())

    assert report.exit_code == 1
    assert report.message == "ValueError"
