"""Custom exceptions for wave_cli.

Every error carries the structured context (limits, paths, status codes,
attempt counts) needed to render an actionable message without digging
through logs.
"""

from typing import Any, Optional


class WaveError(Exception):
    """Base exception for all wave_cli errors."""

    pass


class ValidationError(WaveError):
    """Raised when user input is malformed or options conflict.

    Never retried; the CLI reports it and exits non-zero.
    """

    pass


class PackError(ValidationError):
    """Raised when a directory cannot be packed into a layer."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class BudgetExceededError(ValidationError):
    """Raised when a layer, or the set of inline layers, is over its size limit."""

    def __init__(self, limit: int, actual: int, offending_path: Optional[str] = None):
        """Initialize with the exceeded limit.

        Args:
            limit: Size limit in bytes.
            actual: Measured compressed size in bytes.
            offending_path: Directory the offending layer was packed from, if any.
        """
        self.limit = limit
        self.actual = actual
        self.offending_path = offending_path
        super().__init__(self._default_message())

    def _default_message(self) -> str:
        message = (
            f"Compressed size {_format_size(self.actual)} exceeds the limit "
            f"of {_format_size(self.limit)}"
        )
        if self.offending_path:
            message += f" - offending path: {self.offending_path}"
        return message


class TransientNetworkError(WaveError):
    """Raised for temporary service failures that are worth retrying."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(WaveError):
    """Raised when the service answers with an unexpected status or payload.

    Indicates a client/server contract mismatch rather than a build outcome.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RetryExhaustedError(WaveError):
    """Raised when max retry attempts are exceeded."""

    def __init__(self, attempts: int, cause: BaseException):
        super().__init__(f"Failed after {attempts} attempts: {cause}")
        self.attempts = attempts
        self.cause = cause


class BuildTimeoutError(WaveError):
    """Raised when a build does not reach a terminal status before the deadline.

    This is not a build failure: the build may still complete later.
    """

    def __init__(self, build_id: str, timeout: float, outcome: Any = None):
        super().__init__(
            f"Build {build_id} did not complete within {timeout:.0f} seconds"
        )
        self.build_id = build_id
        self.timeout = timeout
        self.outcome = outcome


class BuildFailedError(WaveError):
    """Raised when container provisioning finished without success."""

    def __init__(
        self,
        reason: Optional[str] = None,
        details_uri: Optional[str] = None,
    ):
        self.reason = reason
        self.details_uri = details_uri
        message = "Container provisioning did not complete successfully"
        if reason:
            message += f"\n- Reason: {reason}"
        if details_uri:
            message += f"\n- Find out more here: {details_uri}"
        super().__init__(message)


def _format_size(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.2f} MiB ({size} bytes)"
    return f"{size} bytes"
