"""Uniform execution and failure classification for external calls."""

import logging
from typing import Any, Callable, List, Optional

from aks_minecraft_ops.exceptions import ExternalCommandError, FatalOperationError
from aks_minecraft_ops.models.results import OperationResult

logger = logging.getLogger(__name__)

Reporter = Callable[[str], None]


class OperationExecutor:
    """Runs one external call, reports it, and decides whether a failure is fatal."""

    def __init__(self, reporter: Optional[Reporter] = None):
        """Initialize the executor.

        Args:
            reporter: Callback receiving one human-readable status line per event
        """
        self.reporter = reporter
        self.history: List[OperationResult] = []

    def _emit(self, name: str, status: str, line: str, level: int = logging.INFO, code: Optional[int] = None):
        extra = {'operation': name, 'status': status}
        if code is not None:
            extra['code'] = code
        logger.log(level, line, extra=extra)
        if self.reporter:
            self.reporter(line)

    @staticmethod
    def classify(error: Exception) -> int:
        """Status code for a failure: the external exit code when there is one."""
        if isinstance(error, ExternalCommandError):
            return error.returncode
        return -1

    def execute(self, name: str, operation: Callable[[], Any], continue_on_error: bool = False) -> OperationResult:
        """Run ``operation`` and wrap its outcome.

        A failure raises FatalOperationError unless ``continue_on_error`` is set,
        in which case a Failed result is returned and the caller carries on.
        """
        self._emit(name, "started", f"▶ {name}...")

        try:
            payload = operation()
        except Exception as e:
            code = self.classify(e)
            message = e.message if isinstance(e, ExternalCommandError) else str(e)

            if not continue_on_error:
                self._emit(name, "failed", f"❌ {name} failed (code {code}): {message}", logging.ERROR, code)
                self.history.append(OperationResult.Failed(name, code, message))
                raise FatalOperationError(name, code, message) from e

            self._emit(name, "failed", f"⚠️  {name} failed (code {code}), continuing: {message}",
                       logging.WARNING, code)
            result = OperationResult.Failed(name, code, message)
            self.history.append(result)
            return result

        self._emit(name, "succeeded", f"✅ {name}")
        result = OperationResult.Success(name, payload)
        self.history.append(result)
        return result

    def skip(self, name: str, reason: str, payload: Any = None) -> OperationResult:
        """Record an operation that did not need to run."""
        self._emit(name, "skipped", f"⏭  {name}: {reason}")
        result = OperationResult.Skipped(name, payload, reason)
        self.history.append(result)
        return result

    def warn(self, name: str, message: str):
        """Report a non-fatal condition that is not tied to an external call."""
        self._emit(name, "warning", f"⚠️  {message}", logging.WARNING)

    def query(self, name: str, operation: Callable[[], Any]) -> Any:
        """Run a read-only lookup and return what it found.

        Lookups get the same status lines as ``execute`` but only a failure is
        kept in the history. A failed lookup is always fatal, since absence
        is reported by the lookup itself and not by an error.
        """
        self._emit(name, "started", f"🔍 {name}...")

        try:
            payload = operation()
        except Exception as e:
            code = self.classify(e)
            message = e.message if isinstance(e, ExternalCommandError) else str(e)
            self._emit(name, "failed", f"❌ {name} failed (code {code}): {message}", logging.ERROR, code)
            self.history.append(OperationResult.Failed(name, code, message))
            raise FatalOperationError(name, code, message) from e

        self._emit(name, "succeeded", f"✅ {name}", logging.DEBUG)
        return payload
