"""Build completion polling.

Waits for a server side build to reach a terminal status by polling its status
on a fixed interval. Between ticks the poller suspends on the cancellation
event, so a cancel request ends the wait at once without another status call.
"""

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..config import PollConfig
from ..core.exceptions import BuildTimeoutError
from ..models import BuildStatus, BuildStatusValue

log = logging.getLogger(__name__)


class AwaitState(str, Enum):
    WAITING = "WAITING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class PollState:
    """Progress of one polling session."""

    build_id: str
    start_time: float
    deadline: float
    last_status: Optional[BuildStatus] = None
    ticks: int = 0

    def elapsed(self, now: float) -> float:
        return now - self.start_time

    def remaining(self, now: float) -> float:
        return max(0.0, self.deadline - now)


@dataclass(frozen=True)
class AwaitOutcome:
    """Terminal result of a polling session."""

    state: AwaitState
    build_id: str
    elapsed: float
    ticks: int
    status: Optional[BuildStatus] = None

    @property
    def succeeded(self) -> bool:
        return self.state == AwaitState.COMPLETED

    @property
    def reason(self) -> Optional[str]:
        return self.status.reason if self.status else None

    @property
    def details_uri(self) -> Optional[str]:
        return self.status.details_uri if self.status else None


_TERMINAL_STATES = {
    BuildStatusValue.COMPLETED: AwaitState.COMPLETED,
    BuildStatusValue.FAILED: AwaitState.FAILED,
}


async def _cancellable_sleep(delay: float, cancel_event: asyncio.Event) -> bool:
    """Sleep for ``delay`` seconds; return True if cancelled meanwhile."""
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True


async def await_completion(
    fetch_status: Callable[[str], Awaitable[BuildStatus]],
    build_id: str,
    config: Optional[PollConfig] = None,
    cancel_event: Optional[asyncio.Event] = None,
    clock: Callable[[], float] = time.monotonic,
) -> AwaitOutcome:
    """Poll a build until it completes, fails, times out or is cancelled.

    Args:
        fetch_status: Async callable returning the current status of a build;
            expected to apply its own retry policy.
        build_id: Identifier of the build to wait for.
        config: Poll interval and timeout (defaults: 10s interval, 15 minutes).
        cancel_event: Optional event; once set, the wait returns a CANCELLED
            outcome without issuing another status call.
        clock: Monotonic clock, in seconds.

    Returns:
        AwaitOutcome in COMPLETED, FAILED or CANCELLED state.

    Raises:
        BuildTimeoutError: If the build is still pending at the deadline; the
            TIMED_OUT outcome is attached as ``outcome``.
        ProtocolError: If a status response cannot be decoded (not retried).
    """
    config = config or PollConfig()
    if cancel_event is None:
        cancel_event = asyncio.Event()

    start = clock()
    state = PollState(build_id=build_id, start_time=start, deadline=start + config.timeout)
    log.debug(
        f"Waiting for build completion: {build_id} - timeout: {config.timeout:.0f} seconds"
    )

    def outcome(terminal: AwaitState) -> AwaitOutcome:
        return AwaitOutcome(
            state=terminal,
            build_id=build_id,
            elapsed=state.elapsed(clock()),
            ticks=state.ticks,
            status=state.last_status,
        )

    while True:
        if cancel_event.is_set():
            log.debug(f"Build wait cancelled: {build_id}")
            return outcome(AwaitState.CANCELLED)

        status = await fetch_status(build_id)
        state = dataclasses.replace(state, last_status=status, ticks=state.ticks + 1)
        log.debug(f"Build {build_id} status: {status.status.value} (tick {state.ticks})")

        if status.is_terminal:
            return outcome(_TERMINAL_STATES[status.status])

        now = clock()
        if now >= state.deadline:
            raise BuildTimeoutError(
                build_id, config.timeout, outcome=outcome(AwaitState.TIMED_OUT)
            )

        if cancel_event.is_set():
            log.debug(f"Build wait cancelled: {build_id}")
            return outcome(AwaitState.CANCELLED)

        if await _cancellable_sleep(
            min(config.interval, state.remaining(now)), cancel_event
        ):
            log.debug(f"Build wait cancelled: {build_id}")
            return outcome(AwaitState.CANCELLED)
