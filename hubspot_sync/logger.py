import logging
import os
import sys
from typing import Optional

DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"

# Libraries that log every request line at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def setup_logging(
    level: Optional[str] = None, format_string: Optional[str] = None
) -> None:
    """
    Send all sync logging to stdout, replacing whatever the root logger had.

    ``level`` is a level name such as "DEBUG"; left out, ``LOG_LEVEL`` decides
    and an unknown name falls back to INFO. HTTP client chatter is held at
    WARNING whatever the root level.
    """
    logging.basicConfig(
        level=_resolve_level(level),
        format=format_string or DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
