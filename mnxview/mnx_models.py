"""Typed view of an MNX document, produced by :mod:`mnxview.mnx_reader`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class MNXPitch:
    step: str
    octave: int
    alter: int = 0


@dataclass(frozen=True)
class MNXDuration:
    """A note value: MNX base name plus augmentation dots."""

    base: str
    dots: int = 0


@dataclass(frozen=True)
class ContinuationSpec:
    """
    One slur or tie declaration.

    Exactly one of the fields is set: ``target`` names the identifier at the
    far end, ``location`` is ``"incoming"`` or ``"outgoing"`` for a span whose
    other side is declared by a complementary event.
    """

    target: str | None = None
    location: str | None = None


@dataclass(frozen=True)
class MNXNote:
    note_id: str
    pitch: MNXPitch
    show_accidental: bool = False
    tie: ContinuationSpec | None = None


@dataclass(frozen=True)
class MNXRest:
    staff_position: int = 0


@dataclass(frozen=True)
class MNXEvent:
    """A single notated instant: a chord of notes, or a rest."""

    event_id: str
    duration: MNXDuration | None
    notes: tuple[MNXNote, ...] = ()
    rest: MNXRest | None = None
    measure: bool = False
    stem_direction: str | None = None
    articulations: tuple[str, ...] = ()
    slurs: tuple[ContinuationSpec, ...] = ()


@dataclass(frozen=True)
class NoteValueQuantity:
    duration: MNXDuration
    multiple: int


@dataclass(frozen=True)
class MNXTuplet:
    """``inner`` notes played in the time of ``outer``."""

    inner: NoteValueQuantity
    outer: NoteValueQuantity
    events: tuple[MNXEvent, ...]
    show_value: str | None = None
    bracket: str | None = None
    orientation: str | None = None


@dataclass(frozen=True)
class MNXGrace:
    events: tuple[MNXEvent, ...]
    slash: bool | None = None


SequenceContent = Union[MNXEvent, MNXTuplet, MNXGrace]


@dataclass(frozen=True)
class MNXSequence:
    content: tuple[SequenceContent, ...]


@dataclass(frozen=True)
class MNXPartMeasure:
    sequences: tuple[MNXSequence, ...]
    beams: tuple[tuple[str, ...], ...] = ()
    clef: str | None = None


@dataclass(frozen=True)
class MNXPart:
    part_id: str | None
    name: str | None
    measures: tuple[MNXPartMeasure, ...]


@dataclass(frozen=True)
class MNXGlobalMeasure:
    time: tuple[int, int] | None = None
    fifths: int | None = None
    repeat_start: bool = False
    repeat_end: bool = False


@dataclass(frozen=True)
class MNXDocument:
    version: int
    global_measures: tuple[MNXGlobalMeasure, ...]
    parts: tuple[MNXPart, ...]
