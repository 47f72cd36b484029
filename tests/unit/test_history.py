from __future__ import annotations

import pytest

from contentintel.services.history import EditHistory


def test_undo_redo_round_trip() -> None:
    h: EditHistory[tuple] = EditHistory(())
    h.set(("a",))
    h.set(("a", "b"))

    assert h.undo() == ("a",)
    assert h.undo() == ()
    assert not h.can_undo
    assert h.undo() == ()
    assert h.redo() == ("a",)
    assert h.redo() == ("a", "b")
    assert not h.can_redo


def test_new_change_discards_redo_tail() -> None:
    h: EditHistory[int] = EditHistory(0)
    h.set(1)
    h.set(2)
    h.undo()
    h.set(3)

    assert h.present == 3
    assert not h.can_redo
    assert h.length == 3
    assert h.undo() == 1


def test_history_is_capped_and_drops_oldest() -> None:
    h: EditHistory[int] = EditHistory(0, max_snapshots=5)
    for i in range(1, 10):
        h.set(i)

    assert h.length == 5
    assert h.present == 9
    for _ in range(10):
        h.undo()
    assert h.present == 5


def test_update_applies_reducer_and_skips_noop() -> None:
    h: EditHistory[tuple] = EditHistory((1,))

    assert h.update(lambda s: s + (2,)) == (1, 2)
    assert h.length == 2

    h.update(lambda s: s)
    assert h.length == 2


def test_reset_clears_history() -> None:
    h: EditHistory[int] = EditHistory(0)
    h.set(1)
    h.reset(7)

    assert h.present == 7
    assert not h.can_undo and not h.can_redo


def test_cap_must_allow_undo() -> None:
    with pytest.raises(ValueError):
        EditHistory(0, max_snapshots=1)
