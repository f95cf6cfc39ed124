"""
Base Service Class.

Shared base for the session controller's collaborators: holds the
injected logger and tags remote-failure warnings with an ``event`` field
so the JSON log can be filtered per operation.
"""

from __future__ import annotations

from paperdraft.logger import StructuredLogger


class BaseService:
    """Base class for all service classes. Provides a logger."""

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger

    def _log_remote_failure(self, event: str, msg: str, *args: object) -> None:
        """Log a failed remote call as a warning tagged with *event*."""
        self._logger.warning(msg, *args, extra={"event": event})
