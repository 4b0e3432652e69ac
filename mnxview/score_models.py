"""Data models for rendered notation handles and the laid-out score."""

from __future__ import annotations

from dataclasses import dataclass, field
from fractions import Fraction
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mnxview.backends import RenderBackend


@dataclass(eq=False)
class RenderedNote:
    """
    A VexFlow note, rest or grace-note token.

    Instances are handles: continuations and tuplets refer to them by
    identity, and the ``handle`` number identifies them in draw calls.
    """

    handle: int
    event_id: str
    keys: list[str]
    duration: str
    clef: str
    ticks: Fraction
    dots: int = 0
    rest: bool = False
    stem_direction: int = 1
    accidentals: list[tuple[int, str]] = field(default_factory=list)
    articulations: list[str] = field(default_factory=list)
    articulation_position: str = "below"
    staff_positions: list[int] = field(default_factory=list)
    grace: bool = False
    slash: bool = False
    grace_notes: list[RenderedNote] = field(default_factory=list)


@dataclass(frozen=True)
class Beam:
    notes: tuple[RenderedNote, ...]


@dataclass(frozen=True)
class Slur:
    first: RenderedNote
    last: RenderedNote


@dataclass(frozen=True)
class Tie:
    """A tie between two events; the indices select the tied chord members."""

    first: RenderedNote
    last: RenderedNote
    first_indices: tuple[int, ...]
    last_indices: tuple[int, ...]


@dataclass(frozen=True)
class RenderedTuplet:
    notes: tuple[RenderedNote, ...]
    num_notes: int
    notes_occupied: int
    bracketed: bool = True
    ratioed: bool = False
    location: int = 1


@dataclass
class StaveSpec:
    """Placement and header modifiers of one part's stave in one measure."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    clef: str | None = None
    key: str | None = None
    cancel_key: str | None = None
    time: tuple[int, int] | None = None
    begin_barline: str = "single"
    end_barline: str = "single"


@dataclass
class PartMeasure:
    """One part's translated measure."""

    part_index: int
    clef: str
    time: tuple[int, int]
    voices: list[list[RenderedNote]]
    tuplets: list[RenderedTuplet] = field(default_factory=list)
    stave: StaveSpec = field(default_factory=StaveSpec)


@dataclass(frozen=True)
class GlobalMeasureAttributes:
    """Score-wide state of one measure index."""

    index: int
    time: tuple[int, int]
    key: str
    time_changed: bool = False
    previous_key: str | None = None
    key_changed: bool = False
    first: bool = False
    last: bool = False
    repeat_start: bool = False
    repeat_end: bool = False


@dataclass
class SystemMeasure:
    """All parts of one measure index, as buffered by the layout engine."""

    attributes: GlobalMeasureAttributes
    parts: list[PartMeasure]
    required_width: float | None = None
    width: float | None = None
    line_start: bool = False


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Line:
    """An emitted, justified system."""

    index: int
    y: float
    bottom: float
    measures: tuple[SystemMeasure, ...]
    widths: tuple[float, ...]


@dataclass
class ScoreLayout:
    """Result of one document translation pass."""

    lines: list[Line]
    width: float
    height: float
    backend: RenderBackend
