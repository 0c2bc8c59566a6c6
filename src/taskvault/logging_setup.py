from __future__ import annotations

import logging
import sys


class _AccessLogFilter(logging.Filter):
    """
    Keep uvicorn's per-request access lines out of the console unless the app
    runs at DEBUG; errors from any logger always pass.
    """

    def __init__(self, root_level: int) -> None:
        super().__init__()
        self._root_level = root_level

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "uvicorn.access":
            return self._root_level <= logging.DEBUG or record.levelno >= logging.WARNING
        return True


# PUBLIC_INTERFACE
def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a single stderr handler.

    Safe to call more than once: a handler installed by an earlier call is
    replaced, handlers installed by anything else (pytest, uvicorn) are kept.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric_level)

    for h in list(root.handlers):
        if getattr(h, "_taskvault", False):
            root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(fmt)
    handler.addFilter(_AccessLogFilter(numeric_level))
    handler._taskvault = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    logging.captureWarnings(True)
