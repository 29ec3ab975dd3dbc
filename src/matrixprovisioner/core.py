import logging
import os
import uuid
from typing import List, Optional

import click
import requests
from rich.console import Console
from rich.panel import Panel

from .constants import MANIFEST_FILE_NAME
from .errors import ProvisionerError
from .errors_catalog import actionable_error
from .models import ProvisionerSettings, ProvisionerState, ProvisioningSession, StageReport, Step
from .pipelines import PIPELINES, HostServices
from .services.manifest import ManifestService
from .services.stage_tracker import StageTracker

console = Console()
logger = logging.getLogger("matrixprovisioner")


class MatrixProvisioner:
    VALID_PIPELINES = sorted(PIPELINES)

    def __init__(
        self,
        pipeline: str = "homeserver",
        work_dir: Optional[str] = None,
        homeserver_config_path: Optional[str] = None,
        registration_script_url: Optional[str] = None,
        admin_image: Optional[str] = None,
        admin_port: Optional[int] = None,
        manifest_file: Optional[str] = None,
        require_root: bool = True,
        dry_run: bool = False,
        services: Optional[HostServices] = None,
        session: Optional[ProvisioningSession] = None,
    ):
        if pipeline not in PIPELINES:
            raise ProvisionerError(f"Unknown pipeline '{pipeline}'. Choose one of: {', '.join(self.VALID_PIPELINES)}")

        self.work_dir = work_dir or os.getcwd()
        settings = {"work_dir": self.work_dir}
        if homeserver_config_path:
            settings["homeserver_config_path"] = homeserver_config_path
        if registration_script_url:
            settings["registration_script_url"] = registration_script_url
        if admin_image:
            settings["admin_image"] = admin_image
        if admin_port is not None:
            settings["admin_host_port"] = int(admin_port)
        self.settings = ProvisionerSettings(**settings)

        self.require_root = require_root
        self.dry_run = dry_run
        self.run_id = uuid.uuid4().hex[:10]

        self.session = session or ProvisioningSession()
        self.services = services or HostServices.create(logger=logger, console=console, requests_module=requests)
        self.pipeline = PIPELINES[pipeline](self.services, self.settings, console, logger)
        self.tracker = StageTracker(logger=logger, console=console)
        self.manifest_file = manifest_file or os.path.join(self.work_dir, MANIFEST_FILE_NAME)
        self.manifest_service = ManifestService(manifest_file=self.manifest_file, logger=logger)

        self.state = ProvisionerState.INIT
        self.history: List[ProvisionerState] = [ProvisionerState.INIT]
        self.failure: Optional[StageReport] = None

    def _transition(self, state: ProvisionerState):
        if state is not ProvisionerState.ABORTED and state.rank <= self.state.rank:
            raise ProvisionerError(f"Invalid state transition {self.state.name} -> {state.name}.")
        logger.debug("State %s -> %s", self.state.name, state.name)
        self.state = state
        self.history.append(state)
        self.manifest_service.set_state(state.value)

    def _run_step(self, step: Step):
        self.tracker.enter(step.name, step.title)
        self.session.current_stage = step.name
        self.manifest_service.step_started(step.name)

        try:
            result = step.action(self.session)
        except BaseException as exc:
            self.manifest_service.step_finished(step.name, "failed", error=str(exc) or exc.__class__.__name__)
            raise

        self.manifest_service.step_finished(step.name, "success")
        self.manifest_service.set_session(self.session.public_values())
        if step.reaches is not None:
            self._transition(step.reaches)
        return result

    def _abort(self, exc: BaseException) -> int:
        self.failure = self.tracker.failure_report(self.tracker.current, exc)
        self._transition(ProvisionerState.ABORTED)
        console.print(f"\n[bold red][ERROR][/bold red] {self.failure.render()}", highlight=False)
        console.print("Check the terminal output above for details.")
        logger.error("Stage %s failed: %s", self.failure.stage, self.failure.message)
        return self.failure.exit_code

    def ensure_root(self):
        if self.require_root and os.geteuid() != 0:
            raise ProvisionerError(actionable_error("root_required"))

    def show_intro(self):
        console.print(
            Panel(
                self.pipeline.intro,
                title=f"matrixprovisioner: {self.pipeline.name}",
                border_style="magenta",
            )
        )
        self.services.interaction.pause("Press Enter to begin installation or Ctrl+C to cancel")

    def plan(self) -> List[str]:
        steps = self.pipeline.steps()
        console.print(f"[bold]Plan for pipeline '{self.pipeline.name}':[/bold]")
        for index, step in enumerate(steps, start=1):
            console.print(f"  {index:2d}. {step.name}: {step.title}")
        return [step.name for step in steps]

    def run(self) -> int:
        if self.dry_run:
            self.plan()
            return 0

        exit_code = 1
        manifest_status = "failed"
        manifest_error: Optional[str] = None

        self.manifest_service.start_run(run_id=self.run_id, pipeline=self.pipeline.name)
        try:
            logger.info("Starting %s provisioning (run %s)...", self.pipeline.name, self.run_id)
            self.ensure_root()
            self.show_intro()

            for step in self.pipeline.steps():
                self._run_step(step)

            for key, value in self.pipeline.artifacts(self.session).items():
                self.manifest_service.add_artifact(key, value)
            manifest_status = "success"
            exit_code = 0
            return exit_code

        except (KeyboardInterrupt, click.Abort) as exc:
            exit_code = self._abort(exc)
            manifest_status = "aborted"
            manifest_error = self.failure.message
            return exit_code
        except ProvisionerError as exc:
            exit_code = self._abort(exc)
            manifest_error = self.failure.message
            return exit_code
        except Exception as exc:
            logger.exception("Unexpected error")
            exit_code = self._abort(exc)
            manifest_error = self.failure.message
            return exit_code
        finally:
            self.manifest_service.finalize(
                manifest_status,
                exit_code=exit_code,
                failed_stage=self.failure.stage if self.failure else None,
                error=manifest_error,
            )
