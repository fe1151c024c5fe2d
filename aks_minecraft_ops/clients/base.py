"""Process wrapper shared by the external control-plane clients."""

import json
import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from typing import IO, Any, List, Optional

from aks_minecraft_ops.exceptions import ExternalCommandError, ErrorCode

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one external process invocation."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def json(self) -> Any:
        """Parse stdout as JSON; empty output parses to None."""
        text = self.stdout.strip()
        if not text:
            return None
        return json.loads(text)


class BackgroundCommand:
    """Handle to a detached process.

    The process runs in its own session, so it keeps going if the tool
    exits before it finishes. Its stderr goes to a file so a chatty process
    never blocks on a full pipe.
    """

    def __init__(self, args: List[str], process: subprocess.Popen, stderr_file: IO[str]):
        self.args = args
        self._process = process
        self._stderr_file = stderr_file
        self._result: Optional[CommandResult] = None

    @property
    def pid(self) -> int:
        return self._process.pid

    def is_done(self) -> bool:
        return self._process.poll() is not None

    def result(self) -> CommandResult:
        """Return the finished process's result. Only valid once is_done()."""
        if self._result is None:
            if not self.is_done():
                raise RuntimeError(f"Command still running: {' '.join(self.args)}")
            self._stderr_file.seek(0)
            stderr = self._stderr_file.read()
            self._stderr_file.close()
            self._result = CommandResult(
                args=self.args,
                returncode=self._process.returncode,
                stderr=stderr or ""
            )
        return self._result


class CommandRunner:
    """Runs external CLI commands and classifies their failures."""

    def __init__(self, default_timeout: int = 300):
        self.default_timeout = default_timeout

    def run(self, args: List[str], timeout: Optional[int] = None, check: bool = True) -> CommandResult:
        """Run a command to completion.

        Raises ExternalCommandError on a non-zero exit when ``check`` is set,
        and always when the binary is missing or the call times out.
        """
        timeout = timeout or self.default_timeout
        logger.debug(f"Running: {' '.join(args)}")

        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout
            )
        except FileNotFoundError as e:
            raise ExternalCommandError(
                f"Command not found: {args[0]}",
                command=args,
                returncode=127,
                stderr=str(e),
                error_code=ErrorCode.COMMAND_NOT_FOUND
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ExternalCommandError(
                f"Command timed out after {timeout} seconds: {' '.join(args[:3])}",
                command=args,
                returncode=124,
                stderr=str(e),
                error_code=ErrorCode.COMMAND_TIMEOUT
            ) from e

        result = CommandResult(
            args=args,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or ""
        )

        if check and not result.ok:
            raise ExternalCommandError(
                f"{' '.join(args[:3])} failed: {result.stderr.strip() or 'no error output'}",
                command=args,
                returncode=result.returncode,
                stderr=result.stderr
            )

        return result

    def start(self, args: List[str]) -> BackgroundCommand:
        """Launch a command in the background and return its handle."""
        logger.debug(f"Starting in background: {' '.join(args)}")

        stderr_file = tempfile.TemporaryFile(mode="w+")
        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.DEVNULL,
                stderr=stderr_file,
                start_new_session=True
            )
        except FileNotFoundError as e:
            stderr_file.close()
            raise ExternalCommandError(
                f"Command not found: {args[0]}",
                command=args,
                returncode=127,
                stderr=str(e),
                error_code=ErrorCode.COMMAND_NOT_FOUND
            ) from e

        return BackgroundCommand(args, process, stderr_file)

    @staticmethod
    def is_installed(binary: str) -> bool:
        return shutil.which(binary) is not None
