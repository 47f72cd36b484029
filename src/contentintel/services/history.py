"""Bounded undo/redo history over immutable document snapshots."""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class EditHistory(Generic[T]):
    """Snapshots plus a cursor. Every change goes through `set` or `update`.

    States must be immutable (the document is a tuple of frozen nodes), so
    snapshots are stored by reference.
    """

    def __init__(self, initial: T, max_snapshots: int = 100):
        if max_snapshots < 2:
            raise ValueError("max_snapshots must be >= 2")
        self._max = max_snapshots
        self._snapshots: list[T] = [initial]
        self._cursor = 0

    @property
    def present(self) -> T:
        return self._snapshots[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._snapshots) - 1

    @property
    def length(self) -> int:
        return len(self._snapshots)

    def set(self, state: T) -> None:
        del self._snapshots[self._cursor + 1 :]
        self._snapshots.append(state)
        overflow = len(self._snapshots) - self._max
        if overflow > 0:
            del self._snapshots[:overflow]
        self._cursor = len(self._snapshots) - 1

    def update(self, fn: Callable[[T], T]) -> T:
        """Apply a reducer to the current state; no snapshot when it returns the same object."""
        nxt = fn(self.present)
        if nxt is not self.present:
            self.set(nxt)
        return self.present

    def undo(self) -> T:
        if self.can_undo:
            self._cursor -= 1
        return self.present

    def redo(self) -> T:
        if self.can_redo:
            self._cursor += 1
        return self.present

    def reset(self, state: T) -> None:
        self._snapshots = [state]
        self._cursor = 0
