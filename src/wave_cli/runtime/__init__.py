"""Retry and completion polling for service calls."""

from .poller import AwaitOutcome, AwaitState, PollState, await_completion
from .retry_manager import RetryState, is_transient_failure, retry_with_backoff

__all__ = [
    "AwaitOutcome",
    "AwaitState",
    "PollState",
    "RetryState",
    "await_completion",
    "is_transient_failure",
    "retry_with_backoff",
]
