"""Base worker class for all external-tool workers."""

import shutil
import subprocess
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..exceptions import ExternalToolError
from ..models.data_models import CommandResult
from ..utils.logging import get_logger

# Same call shape as subprocess.run; returns an object with returncode/stdout/stderr
Runner = Callable[..., Any]

DEFAULT_TIMEOUT = 1800


class BaseWorker:
    """Common command execution for workers that drive system tools."""

    def __init__(self, runner: Optional[Runner] = None, dry_run: bool = False,
                 name: Optional[str] = None):
        """Initialize base worker.

        Args:
            runner: Replacement for subprocess.run (tests inject fakes here)
            dry_run: Log commands instead of executing them
            name: Worker name for logging
        """
        self.name = name or self.__class__.__name__
        self.logger = get_logger(f"workers.{self.name}")
        self.runner = runner or subprocess.run
        self.dry_run = dry_run

    def run(self, argv: Sequence[str], check: bool = True, input: Optional[str] = None,
            timeout: Optional[int] = DEFAULT_TIMEOUT, env: Optional[Dict[str, str]] = None,
            cwd: Optional[str] = None) -> CommandResult:
        """Execute a command without a shell.

        Args:
            argv: Program and arguments
            check: Raise ExternalToolError on a non-zero exit
            input: Text fed to stdin (never logged)
            timeout: Seconds before the command is killed
            env: Environment for the child process
            cwd: Working directory

        Returns:
            Command result
        """
        command = [str(arg) for arg in argv]
        if self.dry_run:
            self.logger.info(f"[dry-run] {' '.join(command)}")
            return CommandResult(command=command, returncode=0)

        self.logger.debug(f"Running: {' '.join(command)}")
        try:
            completed = self.runner(
                command,
                input=input,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=env,
                cwd=cwd,
            )
        except FileNotFoundError:
            result = CommandResult(command=command, returncode=127,
                                   stderr=f"{command[0]}: command not found")
        except subprocess.TimeoutExpired:
            result = CommandResult(command=command, returncode=124,
                                   stderr=f"timed out after {timeout}s")
        else:
            result = CommandResult(
                command=command,
                returncode=completed.returncode,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
            )

        if not result.ok:
            self.logger.debug(f"Exit code {result.returncode}: {result.stderr.strip()}")
            if check:
                raise ExternalToolError(command, result.returncode, result.stderr.strip())
        return result

    @staticmethod
    def command_exists(command: str) -> bool:
        """Check whether an executable is on PATH."""
        return shutil.which(command) is not None

    def run_all(self, commands: List[Sequence[str]], check: bool = True) -> List[CommandResult]:
        """Run several commands in order, stopping at the first failure when checking."""
        return [self.run(argv, check=check) for argv in commands]
