"""
Unit tests for the progress note ledger (nephra.review.ledger).
"""

from datetime import datetime, timezone

from nephra.review.ledger import append_note, latest_note_value, recent_notes

from conftest import make_note


class TestAppendNote:
    def test_returns_new_list_and_leaves_input_alone(self):
        notes = [make_note(10), make_note(20)]
        snapshot = [dict(n) for n in notes]

        updated = append_note(notes, "Prototype built", "Dr. Rao", 35)

        assert len(updated) == 3
        assert updated is not notes
        assert notes == snapshot
        assert len(notes) == 2

    def test_entry_shape(self):
        at = datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc)
        entry = append_note([], "  Lit review done  ", "Dr. Rao", 40, at=at)[-1]
        assert entry == {
            "note": "Lit review done",
            "author": "Dr. Rao",
            "at": "2026-10-01T09:30:00+00:00",
            "value": 40,
        }

    def test_blank_note_text_is_stored_as_none(self):
        assert append_note(None, "   ", "Admin", 10)[0]["note"] is None

    def test_value_is_rounded_and_clamped(self):
        assert append_note([], None, "Admin", 44.5)[0]["value"] == 45
        assert append_note([], None, "Admin", 140)[0]["value"] == 100
        assert append_note([], None, "Admin", -3)[0]["value"] == 0


class TestRecentNotes:
    def test_most_recent_first(self):
        notes = [make_note(v) for v in (10, 20, 30, 40)]
        assert [n["value"] for n in recent_notes(notes, 3)] == [40, 30, 20]

    def test_fewer_notes_than_requested(self):
        assert [n["value"] for n in recent_notes([make_note(5)], 3)] == [5]

    def test_empty_and_non_positive(self):
        assert recent_notes([], 3) == []
        assert recent_notes(None, 3) == []
        assert recent_notes([make_note(5)], 0) == []

    def test_does_not_mutate(self):
        notes = [make_note(v) for v in (1, 2, 3)]
        recent_notes(notes, 2)
        assert [n["value"] for n in notes] == [1, 2, 3]


def test_latest_note_value():
    assert latest_note_value([make_note(10), make_note(60)]) == 60
    assert latest_note_value([]) is None
    assert latest_note_value([{"note": "legacy"}]) is None
