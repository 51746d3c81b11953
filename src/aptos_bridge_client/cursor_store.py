"""
Cursor persistence hook for the event synchronizer.

The client defines no storage format. Callers that need progress to survive
restarts implement ``CursorStore`` over their own database or file and pass
it to the synchronizer, which saves every advanced cursor value.
"""

from typing import Protocol


class CursorStore(Protocol):
    def load(self) -> int | None:
        """Return the last saved cursor, or None if nothing was saved."""
        ...

    def save(self, cursor: int) -> None:
        ...


class InMemoryCursorStore:
    """Process-local store; useful for tests and for sharing progress with a status endpoint."""

    def __init__(self, cursor: int | None = None):
        self._cursor = cursor

    def load(self) -> int | None:
        return self._cursor

    def save(self, cursor: int) -> None:
        if self._cursor is not None and cursor < self._cursor:
            raise ValueError(f"Cursor must not move backwards ({self._cursor} -> {cursor})")
        self._cursor = cursor
