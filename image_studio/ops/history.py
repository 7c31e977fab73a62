"""Bounded undo/redo history of EditState snapshots."""

from __future__ import annotations

from collections import deque

from image_studio.models import EditState

DEFAULT_CAPACITY = 50


class EditHistory:
    """Fixed-capacity ordered snapshots with a current index.

    `push` truncates any redo tail beyond the current index, appends, and drops
    the oldest entry once capacity is exceeded.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._entries: deque[EditState] = deque(maxlen=capacity)
        self._index = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> EditState | None:
        return self._entries[self._index] if self._index >= 0 else None

    def reset(self, state: EditState) -> None:
        self._entries.clear()
        self._entries.append(state)
        self._index = 0

    def push(self, state: EditState) -> None:
        while len(self._entries) > self._index + 1:
            self._entries.pop()
        self._entries.append(state)  # deque(maxlen) drops the oldest
        self._index = len(self._entries) - 1

    def can_undo(self) -> bool:
        return self._index > 0

    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def undo(self) -> EditState | None:
        if not self.can_undo():
            return None
        self._index -= 1
        return self._entries[self._index]

    def redo(self) -> EditState | None:
        if not self.can_redo():
            return None
        self._index += 1
        return self._entries[self._index]
