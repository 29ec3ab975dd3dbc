"""Run manifest generation service."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class ManifestService:
    """Collects execution metadata and writes the run manifest JSON.

    The manifest only ever receives non-secret values; passwords and generated
    tokens stay on the session.
    """

    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "pipeline": None,
            "status": "running",
            "state": None,
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "session": {},
            "steps": [],
            "artifacts": {},
            "failed_stage": None,
            "exit_code": None,
            "error": None,
        }

    def start_run(self, run_id: str, pipeline: str):
        self.manifest["run_id"] = run_id
        self.manifest["pipeline"] = pipeline
        self.manifest["status"] = "running"
        self.manifest["started_at"] = self._now()
        self.write()

    def set_state(self, state: str):
        self.manifest["state"] = state
        self.write()

    def set_session(self, values: Dict[str, Any]):
        self.manifest["session"] = dict(values)
        self.write()

    def step_started(self, step_name: str, details: Optional[Dict[str, Any]] = None):
        self.manifest["steps"].append(
            {
                "name": step_name,
                "status": "running",
                "started_at": self._now(),
                "finished_at": None,
                "duration_seconds": None,
                "details": details or {},
                "error": None,
            }
        )
        self.write()

    def step_finished(
        self,
        step_name: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        for step in reversed(self.manifest["steps"]):
            if step["name"] == step_name and step["status"] == "running":
                step["status"] = status
                step["finished_at"] = self._now()
                step["error"] = error
                if details:
                    step["details"].update(details)
                started_at = datetime.fromisoformat(step["started_at"])
                finished_at = datetime.fromisoformat(step["finished_at"])
                step["duration_seconds"] = (finished_at - started_at).total_seconds()
                break
        self.write()

    def add_artifact(self, key: str, value: str):
        self.manifest["artifacts"][key] = value
        self.write()

    def finalize(
        self,
        status: str,
        exit_code: int,
        failed_stage: Optional[str] = None,
        error: Optional[str] = None,
    ):
        self.manifest["status"] = status
        self.manifest["exit_code"] = exit_code
        self.manifest["failed_stage"] = failed_stage
        self.manifest["finished_at"] = self._now()
        if self.manifest.get("started_at"):
            started_at = datetime.fromisoformat(self.manifest["started_at"])
            finished_at = datetime.fromisoformat(self.manifest["finished_at"])
            self.manifest["duration_seconds"] = (finished_at - started_at).total_seconds()
        self.manifest["error"] = error
        self.write()

    def write(self):
        directory = os.path.dirname(self.manifest_file) or "."
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as exc:
            self.logger.warning("Could not create manifest directory '%s': %s", directory, exc)
            return

        fd, temp_path = tempfile.mkstemp(prefix="provision-manifest-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.manifest, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write manifest file '%s': %s", self.manifest_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
