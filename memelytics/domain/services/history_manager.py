"""Linear undo/redo history over immutable editor snapshots."""
from __future__ import annotations

import logging
from typing import Callable

from memelytics.domain.entities.editor_state import EditorState

logger = logging.getLogger(__name__)


class HistoryManager:
    """Snapshot stack with a cursor.

    Snapshots are frozen ``EditorState`` values, so they are stored as-is and
    never copied. The entry under the cursor is the committed state.
    """

    def __init__(self, initial: EditorState | None = None, max_history: int | None = None) -> None:
        self.max_history = max_history
        self._entries: list[EditorState] = [initial if initial is not None else EditorState()]
        self._cursor = 0
        self._listeners: list[Callable[[HistoryManager], None]] = []

    @property
    def current(self) -> EditorState:
        return self._entries[self._cursor]

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def commit(self, state: EditorState) -> EditorState:
        # drop the redo tail before appending
        del self._entries[self._cursor + 1 :]
        self._entries.append(state)
        self._cursor = len(self._entries) - 1
        if self.max_history is not None and len(self._entries) > self.max_history:
            overflow = len(self._entries) - self.max_history
            del self._entries[:overflow]
            self._cursor -= overflow
        logger.debug("history commit (cursor=%d, total=%d)", self._cursor, len(self._entries))
        self._notify()
        return state

    def undo(self) -> EditorState:
        if self.can_undo:
            self._cursor -= 1
            logger.debug("history undo (cursor=%d)", self._cursor)
            self._notify()
        return self.current

    def redo(self) -> EditorState:
        if self.can_redo:
            self._cursor += 1
            logger.debug("history redo (cursor=%d)", self._cursor)
            self._notify()
        return self.current

    def reset(self, initial: EditorState) -> None:
        self._entries = [initial]
        self._cursor = 0
        self._notify()

    def add_listener(self, callback: Callable[[HistoryManager], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[HistoryManager], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)
