"""MNXReader: validates a decoded MNX JSON object and converts it into typed models."""

from __future__ import annotations

from typing import Any, Final

from mnxview.errors import MNXParseError, UnsupportedFeatureError
from mnxview.mnx_models import (
    ContinuationSpec,
    MNXDocument,
    MNXDuration,
    MNXEvent,
    MNXGlobalMeasure,
    MNXGrace,
    MNXNote,
    MNXPart,
    MNXPartMeasure,
    MNXPitch,
    MNXRest,
    MNXSequence,
    MNXTuplet,
    NoteValueQuantity,
    SequenceContent,
)
from mnxview.notation import (
    ARTICULATIONS,
    DIATONIC_STEPS,
    STEM_DIRECTIONS,
    clef_from_mnx,
    duration_code,
    key_for_fifths,
)

SUPPORTED_VERSION: Final[int] = 1
CONTINUATION_LOCATIONS: Final[set[str]] = {"incoming", "outgoing"}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require(container: dict[str, Any], key: str, message: str) -> Any:
    if key not in container:
        raise MNXParseError(message)
    return container[key]


def _require_list(container: dict[str, Any], key: str, message: str) -> list[Any]:
    value = container.get(key)
    if not isinstance(value, list):
        raise MNXParseError(message)
    return value


def _require_object(value: Any, message: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise MNXParseError(message)
    return value


def _require_int(value: Any, message: str) -> int:
    if not _is_int(value):
        raise MNXParseError(message)
    return int(value)


def _require_str(value: Any, message: str) -> str:
    if not isinstance(value, str):
        raise MNXParseError(message)
    return value


class MNXReader:
    """
    Convert a decoded MNX document into :class:`MNXDocument`.

    Structural problems raise :class:`MNXParseError`; constructs that are
    valid MNX but not handled by the engraver raise
    :class:`UnsupportedFeatureError`.

    Events and notes without an author-supplied ``id`` get a synthetic one
    derived from their position (``_e<part>.<measure>.<sequence>.<index>``
    and ``<event>.n<index>``). All identifiers share a single namespace;
    a repeated identifier is reported, never renamed.

    A reader instance tracks identifiers, so use a fresh one per document.
    """

    def __init__(self) -> None:
        self._seen_ids: set[str] = set()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _claim_id(self, identifier: str) -> str:
        if identifier in self._seen_ids:
            raise MNXParseError(f"Duplicate identifier {identifier!r}.")
        self._seen_ids.add(identifier)
        return identifier

    def _read_duration(self, raw: Any) -> MNXDuration:
        duration = _require_object(raw, "Duration must be an object.")
        base = _require_str(
            _require(duration, "base", "Duration object missing base."), "Duration base must be a string."
        )
        dots = duration.get("dots", 0)
        if not _is_int(dots) or dots < 0:
            raise MNXParseError(f"Illegal number of dots {dots}.")
        duration_code(base)
        return MNXDuration(base=base, dots=dots)

    def _read_pitch(self, raw: Any) -> MNXPitch:
        pitch = _require_object(raw, "Pitch must be an object.")
        octave = _require(pitch, "octave", "Pitch object missing octave.")
        step = _require_str(_require(pitch, "step", "Pitch object missing step."), "Pitch step must be a string.")
        if step not in DIATONIC_STEPS:
            raise MNXParseError(f"Pitch step {step!r} not recognized.")
        alter = pitch.get("alter", 0)
        return MNXPitch(
            step=step,
            octave=_require_int(octave, "Pitch octave must be an integer."),
            alter=_require_int(alter, "Pitch alter must be an integer."),
        )

    def _read_continuation(self, raw: Any, kind: str) -> ContinuationSpec:
        spec = _require_object(raw, f"{kind} must be an object.")
        if "target" in spec:
            target = spec["target"]
            if not isinstance(target, str):
                raise MNXParseError(f"{kind} target must be a string identifier.")
            return ContinuationSpec(target=target)
        if "location" in spec:
            location = _require_str(spec["location"], f"{kind} location must be a string.")
            if location not in CONTINUATION_LOCATIONS:
                raise UnsupportedFeatureError(f"{kind} location {location} not recognized.")
            return ContinuationSpec(location=location)
        raise MNXParseError(f"{kind} object requires a target or a location.")

    def _read_note(self, raw: Any, event_id: str, index: int) -> MNXNote:
        note = _require_object(raw, "Note must be an object.")
        pitch = self._read_pitch(_require(note, "pitch", "Note object missing pitch."))
        show_accidental = False
        if "accidentalDisplay" in note:
            display = _require_object(note["accidentalDisplay"], "Accidental display must be an object.")
            show_accidental = bool(_require(display, "show", "Accidental display object missing show."))
        tie = self._read_continuation(note["tie"], "Tie") if "tie" in note else None
        note_id = _require_str(note.get("id", f"{event_id}.n{index}"), "Note id must be a string.")
        return MNXNote(
            note_id=self._claim_id(note_id),
            pitch=pitch,
            show_accidental=show_accidental,
            tie=tie,
        )

    def _read_event(self, raw: dict[str, Any], default_id: str) -> MNXEvent:
        event_id = self._claim_id(_require_str(raw.get("id", default_id), "Event id must be a string."))
        whole_measure = bool(raw.get("measure", False))

        if whole_measure:
            if "duration" in raw:
                raise MNXParseError("Cannot specify duration for whole-measure event.")
            if "rest" not in raw or "notes" in raw:
                raise MNXParseError("Whole-measure event must consist of a single rest.")
            duration = None
        else:
            duration = self._read_duration(
                _require(raw, "duration", "Event object requires duration except for whole-measure events.")
            )

        if "notes" in raw and "rest" in raw:
            raise MNXParseError(f"Event {event_id} cannot contain both notes and a rest.")

        rest = None
        notes: tuple[MNXNote, ...] = ()
        if "rest" in raw:
            rest_obj = _require_object(raw["rest"], "Rest must be an object.")
            position = _require_int(rest_obj.get("staffPosition", 0), "Rest staff position must be an integer.")
            rest = MNXRest(staff_position=position)
        elif "notes" in raw:
            raw_notes = raw["notes"]
            if not isinstance(raw_notes, list):
                raise MNXParseError("Event notes must be an array.")
            if not raw_notes:
                raise MNXParseError(f"Event {event_id} has an empty notes array.")
            notes = tuple(self._read_note(item, event_id, idx) for idx, item in enumerate(raw_notes))
        else:
            raise MNXParseError(f"Event {event_id} must contain notes or a rest.")

        stem_direction = raw.get("stemDirection")
        if stem_direction is not None:
            _require_str(stem_direction, "Stem direction must be a string.")
            if stem_direction not in STEM_DIRECTIONS:
                raise UnsupportedFeatureError(f"Stem direction {stem_direction} not recognized.")

        articulations: tuple[str, ...] = ()
        if "markings" in raw:
            markings = _require_object(raw["markings"], "Markings object must be an object.")
            for name in markings:
                if name not in ARTICULATIONS:
                    raise UnsupportedFeatureError(f"Unrecognized articulation {name}.")
            articulations = tuple(markings)

        slurs: tuple[ContinuationSpec, ...] = ()
        if "slurs" in raw:
            raw_slurs = _require_list(raw, "slurs", "Event slurs must be an array.")
            slurs = tuple(self._read_continuation(item, "Slur") for item in raw_slurs)

        return MNXEvent(
            event_id=event_id,
            duration=duration,
            notes=notes,
            rest=rest,
            measure=whole_measure,
            stem_direction=stem_direction,
            articulations=articulations,
            slurs=slurs,
        )

    def _read_event_list(self, raw: dict[str, Any], kind: str, default_id: str) -> tuple[MNXEvent, ...]:
        content = _require_list(raw, "content", f"{kind} object missing content array.")
        events = []
        for idx, item in enumerate(content):
            item = _require_object(item, "Sequence content item must be an object.")
            if _require(item, "type", "Sequence content object missing type.") != "event":
                raise MNXParseError(f"{kind} object content can only contain events.")
            events.append(self._read_event(item, f"{default_id}.{idx}"))
        return tuple(events)

    def _read_note_value_quantity(self, raw: Any) -> NoteValueQuantity:
        quantity = _require_object(raw, "Note value quantity must be an object.")
        duration = self._read_duration(
            _require(quantity, "duration", "Note value quantity object missing duration.")
        )
        multiple = _require(quantity, "multiple", "Note value quantity object missing multiple.")
        if not _is_int(multiple) or multiple <= 0:
            raise MNXParseError(f"Illegal note value quantity multiple {multiple}.")
        return NoteValueQuantity(duration=duration, multiple=multiple)

    def _read_content_item(self, raw: Any, default_id: str) -> SequenceContent:
        item = _require_object(raw, "Sequence content item must be an object.")
        item_type = _require(item, "type", "Sequence content object missing type.")

        if item_type == "event":
            return self._read_event(item, default_id)

        if item_type == "tuplet":
            inner = self._read_note_value_quantity(_require(item, "inner", "Tuplet object missing inner."))
            outer = self._read_note_value_quantity(_require(item, "outer", "Tuplet object missing outer."))
            return MNXTuplet(
                inner=inner,
                outer=outer,
                events=self._read_event_list(item, "Tuplet", default_id),
                show_value=item.get("showValue"),
                bracket=item.get("bracket"),
                orientation=item.get("orientation"),
            )

        if item_type == "grace":
            slash = item.get("slash")
            if slash is not None and not isinstance(slash, bool):
                raise MNXParseError("Grace slash must be a boolean.")
            return MNXGrace(events=self._read_event_list(item, "Grace", default_id), slash=slash)

        raise UnsupportedFeatureError(f"Unsupported content type {item_type}.")

    def _read_part_measure(self, raw: Any, part_idx: int, measure_idx: int) -> MNXPartMeasure:
        measure = _require_object(raw, "Measure must be an object.")
        raw_sequences = _require_list(measure, "sequences", "Measure object missing sequences array.")

        clef = None
        if "clefs" in measure:
            clefs = _require_list(measure, "clefs", "Clefs must be array.")
            if len(clefs) > 1:
                raise UnsupportedFeatureError("Multiple clefs in measure.")
            if clefs:
                positioned = _require_object(clefs[0], "Positioned clef must be an object.")
                clef_obj = _require_object(
                    _require(positioned, "clef", "Positioned clef object missing clef object."),
                    "Clef must be an object.",
                )
                clef = clef_from_mnx(
                    _require(clef_obj, "sign", "Clef object missing sign."),
                    _require(clef_obj, "staffPosition", "Clef object missing staff position."),
                )

        beams: list[tuple[str, ...]] = []
        if "beams" in measure:
            for beam in _require_list(measure, "beams", "Measure beams must be an array."):
                beam = _require_object(beam, "Beam must be an object.")
                ids = _require_list(beam, "events", "Beam object missing events array.")
                if not all(isinstance(identifier, str) for identifier in ids):
                    raise MNXParseError("Beam events must be string identifiers.")
                beams.append(tuple(ids))

        sequences = []
        for seq_idx, raw_sequence in enumerate(raw_sequences):
            sequence = _require_object(raw_sequence, "Sequence must be an object.")
            content = _require_list(sequence, "content", "Sequence object missing content array.")
            sequences.append(
                MNXSequence(
                    content=tuple(
                        self._read_content_item(item, f"_e{part_idx}.{measure_idx}.{seq_idx}.{item_idx}")
                        for item_idx, item in enumerate(content)
                    )
                )
            )

        return MNXPartMeasure(sequences=tuple(sequences), beams=tuple(beams), clef=clef)

    def _read_global_measure(self, raw: Any) -> MNXGlobalMeasure:
        measure = _require_object(raw, "Global measure must be an object.")
        time = None
        if "time" in measure:
            ts = _require_object(measure["time"], "Time signature must be an object.")
            count = _require_int(_require(ts, "count", "Time object missing count."), "Time count must be an integer.")
            unit = _require_int(_require(ts, "unit", "Time object missing unit."), "Time unit must be an integer.")
            if count <= 0 or unit <= 0:
                raise MNXParseError(f"Illegal time signature {count}/{unit}.")
            time = (count, unit)

        fifths = None
        if "key" in measure:
            key = _require_object(measure["key"], "Key signature must be an object.")
            fifths = _require_int(
                _require(key, "fifths", "Key signature object missing fifths."),
                "Key signature fifths must be an integer.",
            )
            key_for_fifths(fifths)

        return MNXGlobalMeasure(
            time=time,
            fifths=fifths,
            repeat_start=bool(measure.get("repeatStart")),
            repeat_end=bool(measure.get("repeatEnd")),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read(self, obj: Any) -> MNXDocument:
        """
        Validate ``obj`` (a decoded JSON value) and return the typed document.

        Raises:
            MNXParseError: If the document is structurally invalid.
            UnsupportedFeatureError: If it uses a construct the engraver lacks.
        """
        document = _require_object(obj, "MNX document must be a JSON object.")
        metadata = _require_object(
            _require(document, "mnx", "Metadata object not found."), "Metadata must be an object."
        )
        global_data = _require_object(
            _require(document, "global", "Global data object not found."), "Global data must be an object."
        )
        raw_parts = _require_list(document, "parts", "Parts object array not found.")

        version = _require(metadata, "version", "Metadata missing version.")
        if version != SUPPORTED_VERSION:
            raise UnsupportedFeatureError(f"Unsupported MNX version {version}.")

        raw_global_measures = _require_list(global_data, "measures", "Global missing measures object array.")
        global_measures = tuple(self._read_global_measure(item) for item in raw_global_measures)

        parts = []
        for part_idx, raw_part in enumerate(raw_parts):
            part = _require_object(raw_part, "Part must be an object.")
            raw_measures = _require_list(part, "measures", "Measures must be an array.")
            if len(raw_measures) != len(global_measures):
                raise MNXParseError(
                    f"Part {part_idx} has {len(raw_measures)} measures but global data has {len(global_measures)}."
                )
            parts.append(
                MNXPart(
                    part_id=part.get("id"),
                    name=part.get("name"),
                    measures=tuple(
                        self._read_part_measure(item, part_idx, measure_idx)
                        for measure_idx, item in enumerate(raw_measures)
                    ),
                )
            )

        return MNXDocument(version=version, global_measures=global_measures, parts=tuple(parts))


def read_document(obj: Any) -> MNXDocument:
    """Read ``obj`` with a fresh :class:`MNXReader`."""
    return MNXReader().read(obj)
