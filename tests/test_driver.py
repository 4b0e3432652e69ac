"""End-to-end tests: MNX document in, draw calls out."""

import json

import pytest

from mnx_samples import document, event, four_quarters, measure, note, whole_rest
from mnxview import convert_mnx, translate_document
from mnxview.backends import RecordingBackend
from mnxview.driver import BAD_JSON, SUCCESS, DocumentDriver, global_attributes
from mnxview.errors import MNXParseError
from mnxview.mnx_reader import read_document


def _run(doc: dict) -> RecordingBackend:
    backend = RecordingBackend()
    translate_document(doc, backend=backend)
    return backend


def _two_beamed_eighths(*ids: str) -> dict:
    return measure(
        event(base="eighth", id="a"),
        event(base="eighth", id="b"),
        beams=[list(ids)],
    )


# ---------------------------------------------------------------------------
# Beams
# ---------------------------------------------------------------------------

def test_declared_beam_is_drawn_once_over_both_notes() -> None:
    backend = _run(document([_two_beamed_eighths("a", "b")]))
    (beam,) = backend.calls_of("beam")
    assert beam.args["notes"] == [1, 2]


def test_paint_order_for_single_measure() -> None:
    backend = _run(document([_two_beamed_eighths("a", "b")]))
    assert backend.ops() == ["resize", "stave", "voices", "connector", "beam"]


def test_beam_naming_a_missing_event_is_unresolved() -> None:
    doc = document([measure(event(base="eighth", id="a"), beams=[["a", "b"]])])
    with pytest.raises(MNXParseError, match="1 beam"):
        translate_document(doc)


def test_beam_across_a_barline() -> None:
    doc = document(
        [
            measure(event(base="eighth", id="a"), beams=[["a", "b"]]),
            measure(event(base="eighth", id="b")),
        ]
    )
    backend = _run(doc)
    (beam,) = backend.calls_of("beam")
    assert beam.args["notes"] == [1, 2]


# ---------------------------------------------------------------------------
# Slurs and ties
# ---------------------------------------------------------------------------

def test_cross_measure_slur_is_drawn_after_both_voices() -> None:
    doc = document(
        [
            measure(event(id="a", slurs=[{"target": "b"}])),
            measure(event(id="b")),
        ]
    )
    backend = _run(doc)
    ops = backend.ops()
    (slur,) = backend.calls_of("slur")
    assert (slur.args["first"], slur.args["last"]) == (1, 2)
    last_voices = len(ops) - 1 - ops[::-1].index("voices")
    assert ops.index("slur") > last_voices


def test_long_slur_does_not_change_line_breaks() -> None:
    plain = [four_quarters(f"m{i}e") for i in range(10)]
    slurred = [four_quarters(f"m{i}e") for i in range(10)]
    slurred[0]["sequences"][0]["content"][0]["slurs"] = [{"target": "m9e1"}]

    expected = translate_document(document(plain))
    backend = RecordingBackend()
    layout = translate_document(document(slurred), backend=backend)

    assert [len(line.measures) for line in layout.lines] == [len(line.measures) for line in expected.lines]
    (slur,) = backend.calls_of("slur")
    assert (slur.args["first"], slur.args["last"]) == (1, 37)


def test_outgoing_and_incoming_ties_join_across_measures() -> None:
    doc = document(
        [
            measure(event(note("C", 4, tie={"location": "outgoing"}), base="whole")),
            measure(event(note("C", 4, tie={"location": "incoming"}), base="whole")),
        ]
    )
    (tie,) = _run(doc).calls_of("tie")
    assert tie.args == {"first": 1, "last": 2, "firstIndices": [0], "lastIndices": [0]}


def test_one_sided_ties_stay_within_their_voice() -> None:
    upper = [
        [event(note("C", 5, tie={"location": "outgoing"}), base="whole")],
        [event(note("C", 5, tie={"location": "incoming"}), base="whole")],
    ]
    lower = [
        [
            event(note("C", 4, tie={"location": "outgoing"}), base="half"),
            event(note("C", 4, tie={"location": "incoming"}), base="half"),
        ],
        [whole_rest()],
    ]
    doc = document(
        [
            measure(*upper[0], extra_sequences=[lower[0]]),
            measure(*upper[1], extra_sequences=[lower[1]]),
        ]
    )
    ties = _run(doc).calls_of("tie")
    # handles: whole C5 = 1, C4 halves = 2 and 3, next whole C5 = 4
    assert sorted((t.args["first"], t.args["last"]) for t in ties) == [(1, 4), (2, 3)]


def test_one_sided_chord_ties_match_by_pitch() -> None:
    doc = document(
        [
            measure(
                event(
                    note("C", 4, tie={"location": "outgoing"}),
                    note("G", 4, tie={"location": "outgoing"}),
                    base="half",
                ),
                event(
                    note("G", 4, tie={"location": "incoming"}),
                    note("C", 4, tie={"location": "incoming"}),
                    base="half",
                ),
            )
        ]
    )
    (tie,) = _run(doc).calls_of("tie")
    assert tie.args["firstIndices"] == [0, 1]
    assert tie.args["lastIndices"] == [1, 0]


def test_unresolved_tie_is_reported_at_end_of_score() -> None:
    doc = document([measure(event(note("C", 4, tie={"target": "nowhere"})))])
    with pytest.raises(MNXParseError, match="1 tie"):
        translate_document(doc)


def test_slur_target_earlier_in_the_score_stays_unresolved() -> None:
    doc = document(
        [
            measure(event(id="a")),
            measure(event(id="b", slurs=[{"target": "a"}])),
        ]
    )
    with pytest.raises(MNXParseError, match="1 slur"):
        translate_document(doc)


# ---------------------------------------------------------------------------
# Staves
# ---------------------------------------------------------------------------

def test_key_change_cancels_previous_key() -> None:
    doc = document(
        [measure(whole_rest()), measure(whole_rest())],
        global_measures=[{"key": {"fifths": 2}}, {"key": {"fifths": -1}}],
    )
    first, second = _run(doc).calls_of("stave")
    assert first.args["key"] == "D"
    assert first.args["cancelKey"] is None
    assert second.args["key"] == "F"
    assert second.args["cancelKey"] == "D"


def test_time_signature_drawn_only_when_it_changes() -> None:
    doc = document(
        [measure(whole_rest()) for _ in range(3)],
        global_measures=[{}, {"time": {"count": 3, "unit": 4}}, {}],
    )
    staves = _run(doc).calls_of("stave")
    assert [s.args["time"] for s in staves] == ["4/4", "3/4", None]


def test_repeat_and_final_barlines() -> None:
    doc = document(
        [measure(whole_rest()) for _ in range(3)],
        global_measures=[{"repeatStart": True}, {"repeatEnd": True}, {}],
    )
    staves = _run(doc).calls_of("stave")
    assert [s.args["beginBarline"] for s in staves] == ["repeatBegin", "single", "single"]
    assert [s.args["endBarline"] for s in staves] == ["single", "repeatEnd", "end"]


def test_parts_are_translated_in_lockstep() -> None:
    doc = document(
        [measure(whole_rest()), measure(whole_rest())],
        [measure(whole_rest(), clef=("F", 2)), measure(whole_rest())],
    )
    staves = _run(doc).calls_of("stave")
    assert [s.args["id"] for s in staves] == ["0:0", "0:1", "1:0", "1:1"]
    assert [s.args["clef"] for s in staves[:2]] == ["treble", "bass"]


def test_handles_follow_lockstep_order() -> None:
    doc = document(
        [measure(event(id="t0")), measure(event(id="t1"))],
        [measure(event(id="b0")), measure(event(id="b1"))],
    )
    voices = _run(doc).calls_of("voices")
    handles = [v.args["voices"][0][0]["handle"] for v in voices]
    assert handles == [1, 2, 3, 4]


def test_global_attributes_carry_time_and_key_forward() -> None:
    doc = read_document(
        document(
            [measure(whole_rest()) for _ in range(3)],
            global_measures=[{"time": {"count": 6, "unit": 8}, "key": {"fifths": -3}}, {}, {}],
        )
    )
    attributes = global_attributes(doc)
    assert [a.time for a in attributes] == [(6, 8)] * 3
    assert [a.key for a in attributes] == ["Eb"] * 3
    assert [a.key_changed for a in attributes] == [True, False, False]
    assert attributes[-1].last and not attributes[0].last


def test_driver_leaves_nothing_pending_after_run() -> None:
    driver = DocumentDriver()
    layout = driver.run(read_document(document([four_quarters("x")])))
    assert driver.continuations.pending_count() == 0
    assert driver.layout.pending_count() == 0
    assert len(layout.lines) == 1


# ---------------------------------------------------------------------------
# Structural errors and status strings
# ---------------------------------------------------------------------------

def test_whole_measure_event_with_duration_is_structural_error() -> None:
    doc = document([measure(whole_rest(duration={"base": "whole"}))])
    with pytest.raises(MNXParseError, match="whole-measure"):
        translate_document(doc)


def test_convert_mnx_reports_success() -> None:
    assert convert_mnx(json.dumps(document([four_quarters("x")]))) == SUCCESS


def test_convert_mnx_reports_bad_json() -> None:
    assert convert_mnx("{not json") == BAD_JSON


def test_convert_mnx_reports_parse_errors_with_category() -> None:
    doc = document([four_quarters("x")])
    del doc["parts"]
    assert convert_mnx(json.dumps(doc)) == "[MNX Parse Error] Parts object array not found."


def test_convert_mnx_reports_unsupported_features_with_category() -> None:
    doc = document([four_quarters("x")])
    doc["mnx"]["version"] = 2
    assert convert_mnx(json.dumps(doc)) == "[Unsupported Feature] Unsupported MNX version 2."


def test_convert_mnx_reports_wrongly_typed_id() -> None:
    doc = document([measure(event(id=["a"]))])
    assert convert_mnx(json.dumps(doc)) == "[MNX Parse Error] Event id must be a string."


def test_convert_mnx_draws_onto_given_backend() -> None:
    backend = RecordingBackend()
    assert convert_mnx(json.dumps(document([four_quarters("x")])), backend=backend) == SUCCESS
    assert backend.calls_of("stave")
