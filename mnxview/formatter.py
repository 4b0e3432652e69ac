"""Width estimates for measure content and stave headers."""

from __future__ import annotations

from fractions import Fraction
from typing import Final

from mnxview.notation import fifths_for_key
from mnxview.score_models import PartMeasure, RenderedNote, StaveSpec

# Glyph metrics in canvas units, close to VexFlow's defaults at scale 1.
NOTEHEAD_WIDTH: Final[float] = 11.0
WHOLE_NOTEHEAD_WIDTH: Final[float] = 16.0
ACCIDENTAL_WIDTH: Final[float] = 9.0
DOT_WIDTH: Final[float] = 5.0
FLAG_WIDTH: Final[float] = 8.0
GRACE_NOTE_WIDTH: Final[float] = 9.0
TICK_PADDING: Final[float] = 10.0

STAVE_PADDING: Final[float] = 10.0
CLEF_WIDTH: Final[float] = 30.0
KEY_ACCIDENTAL_WIDTH: Final[float] = 10.0
KEY_PADDING: Final[float] = 5.0
TIME_SIGNATURE_WIDTH: Final[float] = 25.0
REPEAT_BARLINE_WIDTH: Final[float] = 10.0

FLAGGED_DURATIONS: Final[set[str]] = {"8", "16", "32", "64", "128", "256"}


def note_width(note: RenderedNote) -> float:
    """Minimum horizontal room for one note, its modifiers and grace prefix."""
    width = WHOLE_NOTEHEAD_WIDTH if note.duration == "w" else NOTEHEAD_WIDTH
    width += ACCIDENTAL_WIDTH * len(note.accidentals)
    width += DOT_WIDTH * note.dots
    if not note.rest and note.duration in FLAGGED_DURATIONS and note.stem_direction > 0:
        width += FLAG_WIDTH
    width += GRACE_NOTE_WIDTH * len(note.grace_notes)
    return width


def min_content_width(measure: PartMeasure) -> float:
    """
    Minimum formatted width of a measure's voices.

    Notes of different voices starting at the same offset share a tick
    context; the measure needs the sum of the widest member of every
    context plus padding.
    """
    contexts: dict[Fraction, float] = {}
    for voice in measure.voices:
        offset = Fraction(0)
        for note in voice:
            contexts[offset] = max(contexts.get(offset, 0.0), note_width(note))
            offset += note.ticks
    return sum(width + TICK_PADDING for width in contexts.values())


def has_content(measure: PartMeasure) -> bool:
    return any(measure.voices)


def key_signature_width(key: str | None, cancel_key: str | None = None) -> float:
    if key is None:
        return 0.0
    fifths = fifths_for_key(key)
    glyphs = abs(fifths)
    if cancel_key is not None:
        previous = fifths_for_key(cancel_key)
        if previous * fifths < 0:
            glyphs += abs(previous)
        else:
            glyphs += max(0, abs(previous) - abs(fifths))
    if glyphs == 0:
        return 0.0
    return glyphs * KEY_ACCIDENTAL_WIDTH + KEY_PADDING


def content_start(stave: StaveSpec) -> float:
    """Offset of the first note from the stave's left edge."""
    start = STAVE_PADDING
    if stave.begin_barline == "repeatBegin":
        start += REPEAT_BARLINE_WIDTH
    if stave.clef is not None:
        start += CLEF_WIDTH
    start += key_signature_width(stave.key, stave.cancel_key)
    if stave.time is not None:
        start += TIME_SIGNATURE_WIDTH
    return start
