"""Drawing backends that receive the laid-out score."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from mnxview.notation import time_signature_string
from mnxview.score_models import Beam, PartMeasure, RenderedNote, RenderedTuplet, Slur, Tie


class RenderBackend(ABC):
    """
    Abstract drawing surface.

    The layout engine calls these methods in paint order: canvas size,
    then per emitted line the staves, their voices and the system
    connector, then the tuplets, beams, slurs and ties whose notes are all
    placed.
    """

    @abstractmethod
    def resize(self, width: float, height: float) -> None:
        """Set the canvas size."""

    @abstractmethod
    def draw_stave(self, measure_index: int, measure: PartMeasure) -> None:
        """Draw one part's stave at ``measure.stave`` with its header modifiers."""

    @abstractmethod
    def draw_voices(self, measure_index: int, measure: PartMeasure) -> None:
        """Format and draw the voices of ``measure`` onto its stave."""

    @abstractmethod
    def draw_connector(self, measure_index: int, top_part: int, bottom_part: int) -> None:
        """Draw the system-start connector joining the staves of a line."""

    @abstractmethod
    def draw_tuplet(self, tuplet: RenderedTuplet) -> None: ...

    @abstractmethod
    def draw_beam(self, beam: Beam) -> None: ...

    @abstractmethod
    def draw_slur(self, slur: Slur) -> None: ...

    @abstractmethod
    def draw_tie(self, tie: Tie) -> None: ...


@dataclass(frozen=True)
class DrawCall:
    op: str
    args: dict[str, Any]


def stave_id(measure_index: int, part_index: int) -> str:
    return f"{measure_index}:{part_index}"


def note_payload(note: RenderedNote) -> dict[str, Any]:
    """JSON-ready description of a note handle."""
    payload: dict[str, Any] = {
        "handle": note.handle,
        "keys": list(note.keys),
        "duration": note.duration,
        "dots": note.dots,
        "rest": note.rest,
        "clef": note.clef,
        "stem": note.stem_direction,
        "accidentals": [[idx, symbol] for idx, symbol in note.accidentals],
        "articulations": list(note.articulations),
        "articulationPosition": note.articulation_position,
    }
    if note.grace:
        payload["slash"] = note.slash
    if note.grace_notes:
        payload["grace"] = [note_payload(grace) for grace in note.grace_notes]
    return payload


@dataclass
class RecordingBackend(RenderBackend):
    """Keep every draw call, in order, as plain data."""

    calls: list[DrawCall] = field(default_factory=list)

    def _record(self, op: str, **args: Any) -> None:
        self.calls.append(DrawCall(op=op, args=args))

    def resize(self, width: float, height: float) -> None:
        self._record("resize", width=width, height=height)

    def draw_stave(self, measure_index: int, measure: PartMeasure) -> None:
        stave = measure.stave
        self._record(
            "stave",
            id=stave_id(measure_index, measure.part_index),
            x=stave.x,
            y=stave.y,
            width=stave.width,
            clef=stave.clef,
            key=stave.key,
            cancelKey=stave.cancel_key,
            time=time_signature_string(*stave.time) if stave.time else None,
            beginBarline=stave.begin_barline,
            endBarline=stave.end_barline,
        )

    def draw_voices(self, measure_index: int, measure: PartMeasure) -> None:
        count, unit = measure.time
        self._record(
            "voices",
            stave=stave_id(measure_index, measure.part_index),
            beats=count,
            beatValue=unit,
            voices=[[note_payload(note) for note in voice] for voice in measure.voices],
        )

    def draw_connector(self, measure_index: int, top_part: int, bottom_part: int) -> None:
        self._record(
            "connector",
            top=stave_id(measure_index, top_part),
            bottom=stave_id(measure_index, bottom_part),
        )

    def draw_tuplet(self, tuplet: RenderedTuplet) -> None:
        self._record(
            "tuplet",
            notes=[note.handle for note in tuplet.notes],
            numNotes=tuplet.num_notes,
            notesOccupied=tuplet.notes_occupied,
            bracketed=tuplet.bracketed,
            ratioed=tuplet.ratioed,
            location=tuplet.location,
        )

    def draw_beam(self, beam: Beam) -> None:
        self._record("beam", notes=[note.handle for note in beam.notes])

    def draw_slur(self, slur: Slur) -> None:
        self._record("slur", first=slur.first.handle, last=slur.last.handle)

    def draw_tie(self, tie: Tie) -> None:
        self._record(
            "tie",
            first=tie.first.handle,
            last=tie.last.handle,
            firstIndices=list(tie.first_indices),
            lastIndices=list(tie.last_indices),
        )

    def ops(self) -> list[str]:
        return [call.op for call in self.calls]

    def calls_of(self, op: str) -> list[DrawCall]:
        return [call for call in self.calls if call.op == op]

    def payload(self) -> list[dict[str, Any]]:
        """The draw calls as a JSON-serializable list."""
        return [{"op": call.op, **call.args} for call in self.calls]
