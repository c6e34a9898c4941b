import random


def get_backoff_delay(
    attempt: int,
    base: float = 0.15,
    max_seconds: float = 90.0,
    jitter: float = 0.25,
) -> float:
    """
    Returns an exponential backoff delay in seconds for the given attempt.

    Parameters:
    - attempt (int): Zero-based number of failed attempts so far.
    - base (float): The initial delay in seconds.
    - max_seconds (float): Upper bound applied before jitter.
    - jitter (float): Multiplicative jitter as a fraction (e.g., 0.25 = ±25%).

    Returns:
    - float: The delay in seconds.
    """
    if attempt < 0:
        raise ValueError(f"attempt must be non-negative, got {attempt}")

    delay = min(base * (2**attempt), max_seconds)
    return delay * random.uniform(1 - jitter, 1 + jitter)
