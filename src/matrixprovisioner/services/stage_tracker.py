"""Stage tracking for error attribution."""

import click

from matrixprovisioner.constants import DEFAULT_STAGE
from matrixprovisioner.errors import ProvisionerError
from matrixprovisioner.models import StageReport

INTERRUPTED_EXIT_CODE = 130


class StageTracker:
    """Remembers which stage is in flight. Exactly one stage is current at a time."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console
        self.current = DEFAULT_STAGE

    def enter(self, stage: str, title: str = ""):
        self.current = stage
        self.logger.debug("Entering stage: %s", stage)
        self.console.print(f"\n[bold cyan]==>[/bold cyan] {title or stage}")

    def failure_report(self, stage: str, cause: BaseException) -> StageReport:
        if isinstance(cause, ProvisionerError):
            exit_code = cause.exit_code
            message = str(cause)
        elif isinstance(cause, (KeyboardInterrupt, click.Abort)):
            exit_code = INTERRUPTED_EXIT_CODE
            message = "Operation cancelled by user."
        else:
            exit_code = 1
            message = str(cause) or cause.__class__.__name__

        return StageReport(
            stage=stage,
            cause=cause.__class__.__name__,
            message=message,
            exit_code=exit_code,
        )
