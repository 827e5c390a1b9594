"""Lifecycle shared by every tenant-scoped connection handle."""

from __future__ import annotations

import enum
import logging

logger = logging.getLogger(__name__)


class HandleState(enum.Enum):
    OPEN = "open"
    FAILED = "failed"
    CLOSED = "closed"


class ManagedHandle:
    """A single-owner handle: open → closed, or failed → closed.

    ``close()`` is idempotent and safe from any state. Subclasses release
    their resources in ``_release()``.
    """

    kind = "handle"

    def __init__(self) -> None:
        self.state = HandleState.OPEN

    @property
    def closed(self) -> bool:
        return self.state is HandleState.CLOSED

    def mark_failed(self) -> None:
        if self.state is HandleState.OPEN:
            self.state = HandleState.FAILED

    def close(self) -> None:
        if self.state is HandleState.CLOSED:
            return
        try:
            self._release()
        finally:
            self.state = HandleState.CLOSED
            logger.debug("Closed %s", self.kind)

    def _release(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.mark_failed()
        self.close()
