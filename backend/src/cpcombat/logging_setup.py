from __future__ import annotations

import logging
import sys
from typing import Union

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"
JSON_FORMAT = (
    '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s",'
    '"line":%(lineno)d,"msg":"%(message)s"}'
)


def configure_logging(level: Union[str, int] = "INFO", *, json: bool = False) -> None:
    """
    Configure the root logger with a stdout handler.

    Args:
        level: Logging level name or int (e.g., "DEBUG", logging.INFO).
        json: Emit JSON lines when True; otherwise a human-friendly format.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(JSON_FORMAT if json else DEFAULT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)

    logging.captureWarnings(True)
