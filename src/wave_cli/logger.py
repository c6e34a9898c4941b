import logging
import os
import sys
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(
    level: Union[int, str] = logging.WARNING, stream=None, fmt: Optional[str] = None
):
    """
    Sets up the root logger with a stream handler and basic formatting.
    Uses a Rich handler when the stream is a terminal, otherwise falls back to
    standard logging. Does nothing if handlers are already configured.

    Logs go to stderr by default so they never mix with command output.
    """
    if stream is None:
        stream = sys.stderr

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)

    root_logger = logging.getLogger()
    if not root_logger.hasHandlers():
        if fmt is None and hasattr(stream, "isatty") and stream.isatty():
            handler = RichHandler(
                console=Console(file=stream),
                show_path=level == logging.DEBUG,
                rich_tracebacks=True,
            )
        else:
            if fmt is None:
                if level == logging.DEBUG:
                    fmt = "%(asctime)s | %(levelname)-5s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
                else:
                    fmt = "%(asctime)s | %(levelname)-5s | %(message)s"

            handler = logging.StreamHandler(stream)
            handler.setFormatter(logging.Formatter(fmt))

        root_logger.addHandler(handler)

    root_logger.setLevel(level)

    # Optionally allow log level override via env var
    env_level = os.environ.get("WAVE_LOG_LEVEL")
    if env_level:
        root_logger.setLevel(env_level.upper())

    # keep http transport chatter out of debug output
    for logger_name in ("httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))
