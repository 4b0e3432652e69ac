"""Unit tests for the beam, slur and tie trackers."""

from fractions import Fraction

import pytest

from mnxview.continuations import BeamTracker, Continuations, SlurTracker, TieTracker
from mnxview.errors import MNXParseError, UnsupportedFeatureError
from mnxview.score_models import Beam, RenderedNote


def _note(handle: int) -> RenderedNote:
    return RenderedNote(
        handle=handle,
        event_id=f"e{handle}",
        keys=["C/5"],
        duration="8",
        clef="treble",
        ticks=Fraction(1, 2),
    )


# ---------------------------------------------------------------------------
# Beams
# ---------------------------------------------------------------------------

def test_beam_materializes_members_in_observation_order() -> None:
    tracker = BeamTracker()
    tracker.open_beam(["e3", "e1", "e2"])
    notes = [_note(1), _note(2), _note(3)]
    for n in notes:
        tracker.observe(n.event_id, n)

    beams = tracker.flush()
    assert beams == [Beam(notes=tuple(notes))]
    assert tracker.pending_count() == 0


def test_beam_stays_open_until_every_member_is_observed() -> None:
    tracker = BeamTracker()
    tracker.open_beam(["e1", "e2"])
    tracker.observe("e1", _note(1))

    assert tracker.flush() == []
    assert tracker.pending_count() == 1

    tracker.observe("e2", _note(2))
    assert len(tracker.flush()) == 1
    assert tracker.pending_count() == 0


def test_single_member_beam_is_dropped_without_error() -> None:
    tracker = BeamTracker()
    tracker.open_beam(["e1"])
    tracker.observe("e1", _note(1))

    assert tracker.flush() == []
    assert tracker.pending_count() == 0


def test_event_can_belong_to_several_beams() -> None:
    tracker = BeamTracker()
    tracker.open_beam(["e1", "e2"])
    tracker.open_beam(["e2", "e3"])
    for handle in (1, 2, 3):
        tracker.observe(f"e{handle}", _note(handle))

    beams = tracker.flush()
    assert [[n.handle for n in beam.notes] for beam in beams] == [[1, 2], [2, 3]]


def test_completed_beam_is_flushed_once() -> None:
    tracker = BeamTracker()
    tracker.open_beam(["e1", "e2"])
    tracker.observe("e1", _note(1))
    tracker.observe("e2", _note(2))

    assert len(tracker.flush()) == 1
    assert tracker.flush() == []


# ---------------------------------------------------------------------------
# Slurs
# ---------------------------------------------------------------------------

def test_slur_with_explicit_target_resolves_both_ends() -> None:
    tracker = SlurTracker()
    tracker.declare("e1", target="e3")
    tracker.observe("e1", _note(1))
    assert tracker.flush() == []

    tracker.observe("e2", _note(2))
    tracker.observe("e3", _note(3))
    (slur,) = tracker.flush()
    assert (slur.first.handle, slur.last.handle) == (1, 3)
    assert tracker.pending_count() == 0


def test_duplicate_slur_declaration_is_suppressed() -> None:
    tracker = SlurTracker()
    tracker.declare("e1", target="e2")
    tracker.declare("e1", target="e2")
    tracker.observe("e1", _note(1))
    tracker.observe("e2", _note(2))

    assert len(tracker.flush()) == 1


def test_outgoing_slur_is_completed_by_later_incoming() -> None:
    tracker = SlurTracker()
    tracker.declare("e1", location="outgoing")
    tracker.observe("e1", _note(1))
    tracker.observe("e2", _note(2))
    assert tracker.flush() == []
    assert tracker.pending_count() == 1

    tracker.declare("e3", location="incoming")
    tracker.observe("e3", _note(3))
    (slur,) = tracker.flush()
    assert (slur.first.handle, slur.last.handle) == (1, 3)


def test_incoming_slur_waits_for_an_outgoing_declaration() -> None:
    tracker = SlurTracker()
    tracker.declare("e1", location="incoming")
    tracker.observe("e1", _note(1))
    assert tracker.flush() == []

    tracker.declare("e2", location="outgoing")
    tracker.observe("e2", _note(2))
    (slur,) = tracker.flush()
    assert (slur.first.handle, slur.last.handle) == (1, 2)


def test_one_sided_slurs_pair_first_in_first_out() -> None:
    tracker = SlurTracker()
    tracker.declare("e1", location="outgoing")
    tracker.observe("e1", _note(1))
    tracker.declare("e2", location="outgoing")
    tracker.observe("e2", _note(2))
    tracker.declare("e3", location="incoming")
    tracker.observe("e3", _note(3))

    (slur,) = tracker.flush()
    assert (slur.first.handle, slur.last.handle) == (1, 3)
    assert tracker.pending_count() == 1


def test_one_observation_can_close_one_slur_and_open_the_next() -> None:
    tracker = SlurTracker()
    tracker.declare("e1", target="e2")
    tracker.observe("e1", _note(1))
    tracker.declare("e2", target="e3")
    tracker.observe("e2", _note(2))

    (first,) = tracker.flush()
    assert (first.first.handle, first.last.handle) == (1, 2)

    tracker.observe("e3", _note(3))
    (second,) = tracker.flush()
    assert (second.first.handle, second.last.handle) == (2, 3)


def test_self_referencing_slur_resolves_in_a_single_observation() -> None:
    tracker = SlurTracker()
    tracker.declare("e1", target="e1")
    tracker.observe("e1", _note(1))

    (slur,) = tracker.flush()
    assert slur.first is slur.last


def test_slur_declaration_without_target_or_location_is_structural_error() -> None:
    with pytest.raises(MNXParseError):
        SlurTracker().declare("e1")


def test_unknown_slur_location_is_unsupported() -> None:
    with pytest.raises(UnsupportedFeatureError):
        SlurTracker().declare("e1", location="sideways")


# ---------------------------------------------------------------------------
# Ties
# ---------------------------------------------------------------------------

def test_chord_ties_between_same_events_merge_into_one_tie() -> None:
    tracker = TieTracker()
    first, second = _note(1), _note(2)
    tracker.declare("n1", target="n3")
    tracker.declare("n2", target="n4")
    tracker.observe("n1", (first, 0))
    tracker.observe("n2", (first, 1))
    tracker.observe("n3", (second, 0))
    tracker.observe("n4", (second, 1))

    (tie,) = tracker.flush()
    assert tie.first is first
    assert tie.last is second
    assert tie.first_indices == (0, 1)
    assert tie.last_indices == (0, 1)


def test_one_sided_ties_only_pair_within_their_scope() -> None:
    tracker = TieTracker()
    upper, lower = ("v0", "C", 5), ("v1", "C", 4)
    tracker.declare("n1", location="outgoing", scope=upper)
    tracker.observe("n1", (_note(1), 0))
    tracker.declare("n2", location="outgoing", scope=lower)
    tracker.observe("n2", (_note(2), 0))
    tracker.declare("n3", location="incoming", scope=lower)
    tracker.observe("n3", (_note(3), 0))

    (tie,) = tracker.flush()
    assert (tie.first.handle, tie.last.handle) == (2, 3)
    assert tracker.pending_count() == 1

    tracker.declare("n4", location="incoming", scope=upper)
    tracker.observe("n4", (_note(4), 0))
    (tie,) = tracker.flush()
    assert (tie.first.handle, tie.last.handle) == (1, 4)


def test_outgoing_tie_resolved_by_incoming_note() -> None:
    tracker = TieTracker()
    tracker.declare("n1", location="outgoing")
    tracker.observe("n1", (_note(1), 0))
    tracker.declare("n2", location="incoming")
    tracker.observe("n2", (_note(2), 0))

    (tie,) = tracker.flush()
    assert (tie.first.handle, tie.last.handle) == (1, 2)


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------

def test_bundle_reports_unresolved_counts_per_kind() -> None:
    continuations = Continuations()
    continuations.beams.open_beam(["e1", "e2"])
    continuations.slurs.declare("e1", location="outgoing")
    continuations.slurs.declare("e5", target="e9")
    continuations.observe_event("e1", _note(1))

    assert continuations.pending_count() == 3
    with pytest.raises(MNXParseError, match=r"1 beam, 2 slurs"):
        continuations.check_resolved()


def test_bundle_check_passes_when_everything_closed() -> None:
    continuations = Continuations()
    continuations.beams.open_beam(["e1", "e2"])
    continuations.observe_event("e1", _note(1))
    continuations.observe_event("e2", _note(2))

    beams, slurs, ties = continuations.flush()
    assert len(beams) == 1
    assert slurs == [] and ties == []
    continuations.check_resolved()
