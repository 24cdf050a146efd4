"""
Logging setup for RizzCoach.

Every module logs through `logging.getLogger(__name__)`; this module only
installs the console handler once, for the CLI and the API server.
"""

from __future__ import annotations

import logging
import re


class Base64TruncateFilter(logging.Filter):
    """Truncate base64 image data in log records so screenshots never flood the log."""

    DATA_URL_PATTERN = re.compile(r"(data:[^,]*?base64,)([A-Za-z0-9+/=]{20,})")
    PLAIN_PATTERN = re.compile(r"([A-Za-z0-9+/=]{120,})")

    def __init__(self, max_length: int = 64) -> None:
        super().__init__()
        self.max_length = max_length

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._truncate(record.msg)
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._truncate(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True

    def _truncate(self, message: str) -> str:
        result = self.DATA_URL_PATTERN.sub(
            lambda m: f"{m.group(1)}{m.group(2)[: self.max_length]}...[truncated]",
            message,
        )
        return self.PLAIN_PATTERN.sub(
            lambda m: f"{m.group(1)[: self.max_length]}...[truncated]",
            result,
        )


def configure_logging(level: str = "INFO") -> None:
    """Install a single console handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        if getattr(handler, "_rizzcoach", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    )
    handler.addFilter(Base64TruncateFilter())
    handler._rizzcoach = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # Pillow and httpx are chatty at DEBUG.
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
