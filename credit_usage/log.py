"""
Logging setup.

Modules log through ``logging.getLogger(__name__)``; the CLI calls
``configure_logging`` once to attach a stderr handler to the root logger.

Format: time [LEVEL] module.function:line - message
"""

import logging
import sys

_FMT = "%(asctime)s [%(levelname)-5s] %(name)s.%(funcName)s:%(lineno)d - %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"

_APP_HANDLER_MARKER = "_is_credit_usage_handler"


def configure_logging(level: str = "INFO") -> None:
    """Register the stderr handler on the root logger (idempotent).

    Calling again only updates the level.
    """
    root = logging.getLogger()
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)

    for handler in root.handlers:
        if getattr(handler, _APP_HANDLER_MARKER, False):
            handler.setLevel(numeric_level)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FMT, datefmt=_DATE_FMT))
    handler.setLevel(numeric_level)
    setattr(handler, _APP_HANDLER_MARKER, True)
    root.addHandler(handler)
