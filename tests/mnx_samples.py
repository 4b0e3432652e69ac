"""Builders for small MNX documents used across the test modules."""

from typing import Any


def note(step: str = "C", octave: int = 4, alter: int | None = None, **extra: Any) -> dict[str, Any]:
    pitch: dict[str, Any] = {"step": step, "octave": octave}
    if alter is not None:
        pitch["alter"] = alter
    return {"pitch": pitch, **extra}


def event(*notes: dict[str, Any], base: str = "quarter", dots: int = 0, **extra: Any) -> dict[str, Any]:
    duration: dict[str, Any] = {"base": base}
    if dots:
        duration["dots"] = dots
    return {"type": "event", "duration": duration, "notes": list(notes) or [note()], **extra}


def rest(base: str = "quarter", **extra: Any) -> dict[str, Any]:
    return {"type": "event", "duration": {"base": base}, "rest": {}, **extra}


def whole_rest(**extra: Any) -> dict[str, Any]:
    return {"type": "event", "measure": True, "rest": {}, **extra}


def measure(
    *content: dict[str, Any],
    beams: list[list[str]] | None = None,
    clef: tuple[str, int] | None = None,
    extra_sequences: list[list[dict[str, Any]]] | None = None,
) -> dict[str, Any]:
    sequences = [{"content": list(content)}]
    for other in extra_sequences or []:
        sequences.append({"content": other})
    result: dict[str, Any] = {"sequences": sequences}
    if beams is not None:
        result["beams"] = [{"events": ids} for ids in beams]
    if clef is not None:
        sign, position = clef
        result["clefs"] = [{"clef": {"sign": sign, "staffPosition": position}}]
    return result


def document(*parts: list[dict[str, Any]], global_measures: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    """One list of part-measures per part; global measures default to empty objects."""
    count = len(parts[0]) if parts else 0
    return {
        "mnx": {"version": 1},
        "global": {"measures": global_measures if global_measures is not None else [{} for _ in range(count)]},
        "parts": [{"measures": list(measures)} for measures in parts],
    }


def four_quarters(prefix: str) -> dict[str, Any]:
    """A measure of four plain quarter notes with ids ``<prefix>1`` .. ``<prefix>4``."""
    return measure(*(event(note("C", 5), id=f"{prefix}{i}") for i in range(1, 5)))
