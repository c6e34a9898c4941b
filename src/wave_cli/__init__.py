# Load .env vars from file before everything else
from dotenv import load_dotenv

load_dotenv()

from .client import WaveClient, should_await  # noqa: E402
from .config import ClientConfig, LayerLimits, PollConfig, RetryConfig  # noqa: E402
from .core.exceptions import (  # noqa: E402
    BudgetExceededError,
    BuildFailedError,
    BuildTimeoutError,
    PackError,
    ProtocolError,
    RetryExhaustedError,
    TransientNetworkError,
    ValidationError,
    WaveError,
)
from .packing import IgnoreFilter, PackedLayer, compile_patterns, pack_layer  # noqa: E402

__all__ = [
    "BudgetExceededError",
    "BuildFailedError",
    "BuildTimeoutError",
    "ClientConfig",
    "IgnoreFilter",
    "LayerLimits",
    "PackError",
    "PackedLayer",
    "PollConfig",
    "ProtocolError",
    "RetryConfig",
    "RetryExhaustedError",
    "TransientNetworkError",
    "ValidationError",
    "WaveClient",
    "WaveError",
    "compile_patterns",
    "pack_layer",
    "should_await",
]
