"""Pitch, duration, clef and key conversions between MNX and VexFlow vocabularies."""

from __future__ import annotations

from fractions import Fraction
from functools import lru_cache
from typing import Final

from mnxview.errors import UnsupportedFeatureError

# MNX duration base -> VexFlow duration code. The base names coincide with
# music21's duration type names, which is what quarter_length() relies on.
DURATION_CODES: Final[dict[str, str]] = {
    "whole": "w",
    "half": "h",
    "quarter": "q",
    "eighth": "8",
    "16th": "16",
    "32nd": "32",
    "64th": "64",
    "128th": "128",
    "256th": "256",
}

FULL_MEASURE_REST_BASE: Final[str] = "whole"

FIFTHS_TO_MAJOR_KEY: Final[dict[int, str]] = {
    0: "C",
    1: "G",
    2: "D",
    3: "A",
    4: "E",
    5: "B",
    6: "F#",
    7: "C#",
    -1: "F",
    -2: "Bb",
    -3: "Eb",
    -4: "Ab",
    -5: "Db",
    -6: "Gb",
    -7: "Cb",
}

DIATONIC_STEPS: Final[list[str]] = ["C", "D", "E", "F", "G", "A", "B"]

# Pitch sitting on the middle line of the stave for each supported clef.
STAFF_CENTERS: Final[dict[str, tuple[str, int]]] = {
    "treble": ("B", 4),
    "bass": ("D", 3),
}

STEM_UP: Final[int] = 1
STEM_DOWN: Final[int] = -1

STEM_DIRECTIONS: Final[dict[str, int]] = {
    "up": STEM_UP,
    "down": STEM_DOWN,
}

# MNX marking name -> VexFlow articulation code
ARTICULATIONS: Final[dict[str, str]] = {
    "accent": "a>",
    "staccatissimo": "av",
    "staccato": "a.",
    "strongAccent": "a^",
    "tenuto": "a-",
}

DEFAULT_CLEF: Final[str] = "treble"
DEFAULT_FIFTHS: Final[int] = 0
COMMON_TIME: Final[tuple[int, int]] = (4, 4)


def clef_from_mnx(sign: str, staff_position: int) -> str:
    """Return the common clef name for an MNX ``{sign, staffPosition}`` pair."""
    if sign == "G" and staff_position == -2:
        return "treble"
    if sign == "F" and staff_position == 2:
        return "bass"
    raise UnsupportedFeatureError(f"Unrecognized clef {sign} at staff position {staff_position}.")


def key_for_fifths(fifths: int) -> str:
    """Return the VexFlow major key name for a circle-of-fifths position."""
    try:
        return FIFTHS_TO_MAJOR_KEY[fifths]
    except KeyError:
        raise UnsupportedFeatureError(f"Key signature with {fifths} fifths not recognized.") from None


def duration_code(base: str) -> str:
    """Return the VexFlow code for an MNX duration base."""
    try:
        return DURATION_CODES[base]
    except KeyError:
        raise UnsupportedFeatureError(f"Duration type {base} not recognized.") from None


@lru_cache(maxsize=None)
def quarter_length(base: str, dots: int = 0) -> Fraction:
    """Length of a (dotted) note value in quarter notes."""
    from music21 import duration

    if base not in DURATION_CODES:
        raise UnsupportedFeatureError(f"Duration type {base} not recognized.")
    return Fraction(duration.Duration(type=base, dots=dots).quarterLength)


def measure_quarter_length(count: int, unit: int) -> Fraction:
    """Length of a full measure of ``count/unit`` in quarter notes."""
    return Fraction(4 * count, unit)


def time_signature_string(count: int, unit: int) -> str:
    return f"{count}/{unit}"


def alter_string(alter: int, explicit_natural: bool = False) -> str:
    """
    Accidental glyph code for a chromatic alteration.

    ``explicit_natural`` yields ``"n"`` for an unaltered pitch instead of an
    empty string, which is what a displayed accidental needs.
    """
    if alter == 0:
        return "n" if explicit_natural else ""
    if alter < 0:
        return "b" * -alter
    return "#" * alter


def pitch_to_key(step: str, octave: int, alter: int = 0) -> str:
    """VexFlow key string, e.g. ``("F", 4, 1) -> "F#/4"``."""
    return f"{step}{alter_string(alter)}/{octave}"


def _diatonic_number(step: str, octave: int) -> int:
    return octave * len(DIATONIC_STEPS) + DIATONIC_STEPS.index(step)


def staff_position(step: str, octave: int, clef: str) -> int:
    """Diatonic distance of a pitch from the middle line (positive is higher)."""
    center_step, center_octave = STAFF_CENTERS[clef]
    return _diatonic_number(step, octave) - _diatonic_number(center_step, center_octave)


def staff_position_to_pitch(position: int, clef: str) -> tuple[str, int]:
    """Inverse of :func:`staff_position`: the (step, octave) drawn at ``position``."""
    center_step, center_octave = STAFF_CENTERS[clef]
    number = DIATONIC_STEPS.index(center_step) + position
    octave_offset, step_index = divmod(number, len(DIATONIC_STEPS))
    return DIATONIC_STEPS[step_index], center_octave + octave_offset


def fifths_for_key(key: str) -> int:
    """Inverse of :func:`key_for_fifths`."""
    for fifths, name in FIFTHS_TO_MAJOR_KEY.items():
        if name == key:
            return fifths
    raise UnsupportedFeatureError(f"Key {key} not recognized.")
