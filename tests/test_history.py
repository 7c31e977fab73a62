from __future__ import annotations

import pytest

from image_studio.models import EditState
from image_studio.ops.history import EditHistory


def _state(deg: float) -> EditState:
    return EditState(rotation_deg=deg)


def test_empty_history() -> None:
    h = EditHistory()
    assert h.current is None
    assert not h.can_undo()
    assert not h.can_redo()
    assert h.undo() is None


def test_undo_redo_walks_snapshots() -> None:
    h = EditHistory()
    h.reset(_state(0))
    h.push(_state(90))
    h.push(_state(180))

    assert h.undo() == _state(90)
    assert h.undo() == _state(0)
    assert h.undo() is None
    assert h.redo() == _state(90)
    assert h.current == _state(90)
    assert h.can_redo()


def test_push_truncates_redo_tail() -> None:
    h = EditHistory()
    h.reset(_state(0))
    h.push(_state(90))
    h.push(_state(180))
    h.undo()
    h.undo()

    h.push(_state(45))
    assert len(h) == 2
    assert not h.can_redo()
    assert h.undo() == _state(0)


def test_capacity_drops_oldest() -> None:
    h = EditHistory(capacity=3)
    h.reset(_state(0))
    for deg in (1, 2, 3):
        h.push(_state(deg))

    assert len(h) == 3
    assert h.current == _state(3)
    assert h.undo() == _state(2)
    assert h.undo() == _state(1)
    assert h.undo() is None


def test_reset_discards_everything() -> None:
    h = EditHistory()
    h.reset(_state(0))
    h.push(_state(90))
    h.reset(_state(10))
    assert len(h) == 1
    assert h.index == 0
    assert h.current == _state(10)


def test_invalid_capacity() -> None:
    with pytest.raises(ValueError):
        EditHistory(capacity=0)
