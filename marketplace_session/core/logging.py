"""
Logging utilities for the session layer and the operator scripts.

Provides a consistent logging format and keeps credentials out of log lines.
"""

import logging
import sys
from typing import Optional


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format.

    The level is applied even when the host already installed handlers.
    """
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger().setLevel(level.upper())


def redact(token: Optional[str], visible: int = 6) -> str:
    """Return a log-safe rendering of a credential."""
    if not token:
        return "<none>"
    if len(token) <= visible:
        return "***"
    return f"{token[:visible]}***"


__all__ = ["configure_logging", "redact"]
