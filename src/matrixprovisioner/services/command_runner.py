"""Subprocess execution service for matrixprovisioner."""

import os
import subprocess
from typing import Dict, List, Optional, Type

from matrixprovisioner.errors import ToolInvocationError
from matrixprovisioner.errors_catalog import actionable_error


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        input_text: Optional[str] = None,
        error_cls: Type[ToolInvocationError] = ToolInvocationError,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        effective_env = None
        if env:
            effective_env = dict(os.environ)
            effective_env.update(env)

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                env=effective_env,
                input=input_text,
            )
        except FileNotFoundError as exc:
            raise error_cls(actionable_error("command_missing", command=cmd[0]), exit_code=127) from exc
        except subprocess.TimeoutExpired as exc:
            raise error_cls(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise error_cls(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise error_cls(message, exit_code=result.returncode)

        self.logger.debug(message)
        return result
