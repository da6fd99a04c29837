"""
Git subprocess launcher with dubious ownership handling.

Provides the long-lived process pipes the scanners talk to: a writable
binary stdin and a buffered binary stdout, plus the environment tweaks that
let git run against repositories owned by a different user (sudo, Docker,
CI/CD).
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import IO, Dict, List, Optional

from ..exceptions import PipeStartError

logger = logging.getLogger(__name__)

PIPE_BUFFER_SIZE = 65536


def get_git_environment(project_dir: Path) -> Dict[str, str]:
    """
    Get environment variables for git commands to handle dubious ownership.

    Args:
        project_dir: Path to the repository directory

    Returns:
        Dictionary of environment variables for git commands
    """
    env = os.environ.copy()
    try:
        existing_count = max(int(os.environ.get("GIT_CONFIG_COUNT", "0")), 0)
    except ValueError:
        existing_count = 0

    # git only reads entries below GIT_CONFIG_COUNT
    for key in os.environ:
        if key.startswith(("GIT_CONFIG_KEY_", "GIT_CONFIG_VALUE_")):
            del env[key]

    # safe.directory goes in slot 0; active entries shift up by one
    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(project_dir.resolve())

    for idx in range(existing_count):
        key = os.environ.get(f"GIT_CONFIG_KEY_{idx}")
        if key is None:
            continue
        env[f"GIT_CONFIG_KEY_{idx + 1}"] = key
        value = os.environ.get(f"GIT_CONFIG_VALUE_{idx}")
        if value is not None:
            env[f"GIT_CONFIG_VALUE_{idx + 1}"] = value

    env["GIT_CONFIG_COUNT"] = str(existing_count + 1)

    return env


class ProcessPipe:
    """A running subprocess with a writable stdin and a buffered stdout.

    The caller must call close_stdin() once no more input will be sent so
    the subprocess sees end-of-input, drains and exits.
    """

    def __init__(self, command: List[str], process: subprocess.Popen):
        self.command = command
        self.process = process
        self.stdin: IO[bytes] = process.stdin  # type: ignore[assignment]
        self.stdout: IO[bytes] = process.stdout  # type: ignore[assignment]

    def close_stdin(self) -> None:
        """Signal end-of-input to the subprocess."""
        if self.stdin.closed:
            return
        try:
            self.stdin.close()
        except OSError as e:
            # Flushing into a process that already exited
            logger.debug(f"Ignoring error closing stdin of {self.command[:2]}: {e}")

    def close(self) -> int:
        """Release both ends and wait for the subprocess to exit.

        Returns:
            The subprocess exit status
        """
        self.close_stdin()
        if not self.stdout.closed:
            self.stdout.close()
        return self.process.wait()

    def kill(self) -> None:
        """Kill the subprocess if it is still running."""
        if self.process.poll() is None:
            self.process.kill()


def start_command(
    name: str,
    *args: str,
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
) -> ProcessPipe:
    """
    Launch a command with piped stdin and stdout.

    Args:
        name: Executable to run (e.g. "git")
        *args: Command arguments
        cwd: Working directory for the command
        env: Environment for the command (defaults to the current one)

    Returns:
        ProcessPipe wrapping the running process

    Raises:
        PipeStartError: If the process cannot be spawned
    """
    command = [name, *args]
    logger.debug(f"Starting {' '.join(command)} in {cwd or Path.cwd()}")

    try:
        process = subprocess.Popen(
            command,
            cwd=cwd,
            env=env,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            bufsize=PIPE_BUFFER_SIZE,
        )
    except (OSError, ValueError) as e:
        _log_start_failure(e, command, cwd)
        raise PipeStartError(command, str(e)) from e

    return ProcessPipe(command, process)


def _log_start_failure(
    exception: Exception, command: List[str], cwd: Optional[Path]
) -> None:
    """Record a spawn failure with the centralized exception logger."""
    from .exception_logger import ExceptionLogger

    exception_logger = ExceptionLogger.get_instance()
    if exception_logger:
        exception_logger.log_exception(
            exception,
            context={"command": " ".join(command), "cwd": str(cwd)},
        )
    logger.error(f"Failed to start {' '.join(command)}: {exception}")
