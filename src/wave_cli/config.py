"""Centralized configuration for the Wave client."""

import os
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional, TypeVar

from .core.exceptions import ValidationError

DEFAULT_ENDPOINT = "https://wave.seqera.io"
DEFAULT_TOWER_ENDPOINT = "https://api.cloud.seqera.io"

ONE_MIB = 1024 * 1024

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior with exponential backoff."""

    initial_delay: float = 0.15
    max_delay: float = 90.0
    max_attempts: int = 5
    jitter: float = 0.25
    retryable_status_codes: FrozenSet[int] = field(
        default_factory=lambda: frozenset({249, 502, 503, 504})
    )

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0 and 1")


@dataclass(frozen=True)
class PollConfig:
    """Configuration for build completion polling."""

    interval: float = 10.0
    timeout: float = 15 * 60.0


@dataclass(frozen=True)
class LayerLimits:
    """Compressed size limits applied to packed layers."""

    context_layer: int = 5 * ONE_MIB
    config_layer: int = ONE_MIB
    aggregate: int = 10 * ONE_MIB


@dataclass(frozen=True)
class ClientConfig:
    """Wave client configuration."""

    endpoint: str = DEFAULT_ENDPOINT
    connect_timeout: float = 30.0
    retry: RetryConfig = field(default_factory=RetryConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    limits: LayerLimits = field(default_factory=LayerLimits)
    tower_endpoint: Optional[str] = DEFAULT_TOWER_ENDPOINT
    tower_token: Optional[str] = None
    tower_workspace_id: Optional[int] = None

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables.

        Environment variables:
        - WAVE_ENDPOINT: Wave service URL (default: https://wave.seqera.io)
        - WAVE_RETRY_MAX_ATTEMPTS: Max attempts per request (default: 5)
        - WAVE_RETRY_DELAY: Initial backoff delay in seconds (default: 0.15)
        - WAVE_RETRY_MAX_DELAY: Max backoff delay in seconds (default: 90)
        - WAVE_RETRY_JITTER: Jitter factor (default: 0.25)
        - WAVE_POLL_INTERVAL: Status polling interval in seconds (default: 10)
        - TOWER_API_ENDPOINT: Platform API endpoint, ``null`` disables it
        - TOWER_ACCESS_TOKEN: Platform access token, ``null`` disables it
        - TOWER_WORKSPACE_ID: Platform workspace id

        Returns:
            ClientConfig initialized from environment variables.

        Raises:
            ValidationError: If a variable holds a malformed or out of range value.
        """
        try:
            retry = RetryConfig(
                initial_delay=_env("WAVE_RETRY_DELAY", float, 0.15),
                max_delay=_env("WAVE_RETRY_MAX_DELAY", float, 90.0),
                max_attempts=_env("WAVE_RETRY_MAX_ATTEMPTS", int, 5),
                jitter=_env("WAVE_RETRY_JITTER", float, 0.25),
            )
        except ValueError as e:
            raise ValidationError(f"Invalid retry settings - {e}") from e
        poll = PollConfig(interval=_env("WAVE_POLL_INTERVAL", float, 10.0))

        workspace_id = _env("TOWER_WORKSPACE_ID", int, None)

        return cls(
            endpoint=os.getenv("WAVE_ENDPOINT") or DEFAULT_ENDPOINT,
            retry=retry,
            poll=poll,
            tower_endpoint=_nullable(
                os.getenv("TOWER_API_ENDPOINT") or DEFAULT_TOWER_ENDPOINT
            ),
            tower_token=_nullable(os.getenv("TOWER_ACCESS_TOKEN")),
            tower_workspace_id=workspace_id,
        )


def _env(name: str, convert: Callable[[str], T], default: Optional[T]) -> Optional[T]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return convert(value.strip())
    except ValueError as e:
        raise ValidationError(
            f"Invalid value for environment variable {name}: '{value}'"
        ) from e


def _nullable(value: Optional[str]) -> Optional[str]:
    # "null" explicitly disables a setting that otherwise has a default
    if value is None or value == "null" or not value.strip():
        return None
    return value
