from __future__ import annotations

from dataclasses import replace

from memelytics.domain.entities.editor_state import EditorState
from memelytics.domain.services.history_manager import HistoryManager


def _state(n: int) -> EditorState:
    return replace(EditorState(), rotation_deg=float(n))


def test_commit_moves_cursor_to_new_tip():
    history = HistoryManager(_state(0))
    history.commit(_state(1))
    history.commit(_state(2))
    assert history.current == _state(2)
    assert history.cursor == 2
    assert history.can_undo and not history.can_redo


def test_undo_redo_walk_and_stop_at_ends():
    history = HistoryManager(_state(0))
    history.commit(_state(1))
    assert history.undo() == _state(0)
    assert history.undo() == _state(0)  # no-op at the start
    assert history.redo() == _state(1)
    assert history.redo() == _state(1)  # no-op at the tip


def test_commit_after_undo_discards_redo_tail():
    history = HistoryManager(_state(0))
    history.commit(_state(1))
    history.commit(_state(2))
    history.undo()
    history.undo()
    history.commit(_state(9))
    assert len(history) == 2
    assert not history.can_redo
    assert history.undo() == _state(0)


def test_history_length_is_monotonic_between_truncations():
    history = HistoryManager(_state(0))
    lengths = []
    for n in range(1, 6):
        history.commit(_state(n))
        lengths.append(len(history))
    assert lengths == sorted(lengths)
    for _ in range(3):
        history.undo()
        assert len(history) == 6


def test_max_history_drops_oldest_entries():
    history = HistoryManager(_state(0), max_history=3)
    for n in range(1, 6):
        history.commit(_state(n))
    assert len(history) == 3
    assert history.current == _state(5)
    history.undo()
    history.undo()
    assert history.current == _state(3)
    assert not history.can_undo


def test_listeners_fire_on_moves_and_can_be_removed():
    history = HistoryManager(_state(0))
    seen = []

    def listener(h):
        seen.append(h.cursor)

    history.add_listener(listener)
    history.commit(_state(1))
    history.undo()
    history.undo()  # no-op does not notify
    history.remove_listener(listener)
    history.redo()
    assert seen == [1, 0]


def test_reset_replaces_everything():
    history = HistoryManager(_state(0))
    history.commit(_state(1))
    history.reset(_state(7))
    assert history.current == _state(7)
    assert len(history) == 1
    assert not history.can_undo
