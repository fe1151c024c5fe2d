"""Custom exception classes for AKS Minecraft Ops."""

from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for different types of failures."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # External control-plane errors
    COMMAND_FAILED = "COMMAND_FAILED"
    COMMAND_NOT_FOUND = "COMMAND_NOT_FOUND"
    COMMAND_TIMEOUT = "COMMAND_TIMEOUT"
    KUBERNETES_API_ERROR = "KUBERNETES_API_ERROR"

    # Pipeline errors
    OPERATION_FAILED = "OPERATION_FAILED"

    # Teardown errors
    RESOURCE_GROUP_NOT_FOUND = "RESOURCE_GROUP_NOT_FOUND"
    TEARDOWN_TIMEOUT = "TEARDOWN_TIMEOUT"


class AksOpsError(Exception):
    """Base exception class for AKS Minecraft Ops."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Specific error code for the failure
            details: Additional context about the error
            cause: The underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured output."""
        result = {
            'error': self.error_code.value,
            'message': self.message,
            'details': self.details
        }

        if self.cause:
            result['cause'] = str(self.cause)

        return result

    def __str__(self) -> str:
        """String representation of the exception."""
        base_str = f"{self.error_code.value}: {self.message}"

        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            base_str += f" ({details_str})"

        if self.cause:
            base_str += f" [caused by: {self.cause}]"

        return base_str


class ValidationError(AksOpsError):
    """Exception for validation failures."""

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None):
        details = {}
        if field:
            details['field'] = field
        if value is not None:
            details['value'] = str(value)

        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details=details
        )


class ConfigurationError(AksOpsError):
    """Exception for configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {}
        if config_key:
            details['config_key'] = config_key

        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            details=details
        )


class ExternalCommandError(AksOpsError):
    """Exception for a failed call to an external control-plane client."""

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: int = 1,
        stderr: str = "",
        error_code: ErrorCode = ErrorCode.COMMAND_FAILED
    ):
        details = {'returncode': returncode}
        if command:
            details['command'] = " ".join(command[:3])

        super().__init__(
            message=message,
            error_code=error_code,
            details=details
        )
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class FatalOperationError(AksOpsError):
    """Raised when a required pipeline step fails; the run stops here."""

    def __init__(self, operation: str, code: int, message: str):
        super().__init__(
            message=f"Operation '{operation}' failed: {message}",
            error_code=ErrorCode.OPERATION_FAILED,
            details={'operation': operation, 'code': code}
        )
        self.operation = operation
        self.code = code


class ResourceGroupNotFoundError(AksOpsError):
    """Exception for when no resource group matches a teardown request."""

    def __init__(self, target: str):
        super().__init__(
            message=f"No resource group found for '{target}'",
            error_code=ErrorCode.RESOURCE_GROUP_NOT_FOUND,
            details={'target': target}
        )
        self.target = target


class TeardownTimeoutError(AksOpsError):
    """Exception for teardown runs that left deletions in progress."""

    def __init__(self, running: List[str], timeout_seconds: Optional[float] = None):
        details: Dict[str, Any] = {'running': ", ".join(running)}
        if timeout_seconds:
            details['timeout_seconds'] = int(timeout_seconds)

        super().__init__(
            message=f"{len(running)} deletion(s) still in progress",
            error_code=ErrorCode.TEARDOWN_TIMEOUT,
            details=details
        )
        self.running = running

