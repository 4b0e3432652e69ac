"""MeasureTranslator: turns one part's MNX measure into VexFlow-ready note handles."""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from fractions import Fraction

from mnxview.continuations import Continuations
from mnxview.errors import MNXParseError
from mnxview.mnx_models import MNXEvent, MNXGrace, MNXPartMeasure, MNXTuplet
from mnxview.notation import (
    ARTICULATIONS,
    FULL_MEASURE_REST_BASE,
    STEM_DIRECTIONS,
    STEM_DOWN,
    STEM_UP,
    alter_string,
    duration_code,
    measure_quarter_length,
    pitch_to_key,
    quarter_length,
    staff_position,
    staff_position_to_pitch,
)
from mnxview.score_models import RenderedNote, RenderedTuplet


class MeasureTranslator:
    """
    Translate the measures of one part, in order.

    The translator feeds every produced event (and every note, for ties)
    into the shared :class:`Continuations`. Grace notes are held in a
    per-voice queue until the next ordinary event of that voice, which may
    sit in a later measure; :meth:`check_finished` reports grace notes that
    never found one.

    One-sided slurs pair only within the same part and sequence, one-sided
    ties additionally only between notes of the same pitch.
    """

    def __init__(self, handles: Iterator[int] | None = None, part_index: int = 0) -> None:
        self._handles = handles if handles is not None else itertools.count(1)
        self.part_index = part_index
        self._grace_queues: dict[int, list[RenderedNote]] = {}

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _auto_stem(self, positions: list[int]) -> int:
        """Stem down when the chord sits on or above the middle line."""
        if (min(positions) + max(positions)) / 2 >= 0:
            return STEM_DOWN
        return STEM_UP

    def _build_note(
        self,
        event: MNXEvent,
        clef: str,
        time: tuple[int, int],
        scale: Fraction = Fraction(1),
        grace: bool = False,
    ) -> RenderedNote:
        if event.duration is None:
            base, dots = FULL_MEASURE_REST_BASE, 0
            ticks = measure_quarter_length(*time)
        else:
            base, dots = event.duration.base, event.duration.dots
            ticks = quarter_length(base, dots) * scale

        if event.rest is not None:
            step, octave = staff_position_to_pitch(event.rest.staff_position, clef)
            return RenderedNote(
                handle=next(self._handles),
                event_id=event.event_id,
                keys=[pitch_to_key(step, octave)],
                duration=duration_code(base),
                clef=clef,
                ticks=ticks,
                dots=dots,
                rest=True,
                staff_positions=[event.rest.staff_position],
                grace=grace,
            )

        positions = [staff_position(note.pitch.step, note.pitch.octave, clef) for note in event.notes]
        if event.stem_direction is not None:
            stem = STEM_DIRECTIONS[event.stem_direction]
        else:
            stem = self._auto_stem(positions)

        return RenderedNote(
            handle=next(self._handles),
            event_id=event.event_id,
            keys=[pitch_to_key(n.pitch.step, n.pitch.octave, n.pitch.alter) for n in event.notes],
            duration=duration_code(base),
            clef=clef,
            ticks=ticks,
            dots=dots,
            stem_direction=stem,
            accidentals=[
                (idx, alter_string(n.pitch.alter, explicit_natural=True))
                for idx, n in enumerate(event.notes)
                if n.show_accidental
            ],
            articulations=[ARTICULATIONS[name] for name in event.articulations],
            # articulations go on the notehead side
            articulation_position="above" if stem == STEM_DOWN else "below",
            staff_positions=positions,
            grace=grace,
        )

    def _register(
        self, event: MNXEvent, note: RenderedNote, voice: int, continuations: Continuations
    ) -> None:
        scope = (self.part_index, voice)
        for slur in event.slurs:
            continuations.slurs.declare(
                event.event_id, target=slur.target, location=slur.location, scope=scope
            )
        for mnx_note in event.notes:
            tie = mnx_note.tie
            if tie is not None:
                pitch = mnx_note.pitch
                continuations.ties.declare(
                    mnx_note.note_id,
                    target=tie.target,
                    location=tie.location,
                    scope=(*scope, pitch.step, pitch.octave, pitch.alter),
                )

        continuations.observe_event(event.event_id, note)
        for idx, mnx_note in enumerate(event.notes):
            continuations.observe_note(mnx_note.note_id, note, idx)

    def _translate_event(
        self,
        event: MNXEvent,
        clef: str,
        time: tuple[int, int],
        voice: int,
        continuations: Continuations,
        scale: Fraction = Fraction(1),
    ) -> RenderedNote:
        note = self._build_note(event, clef, time, scale)
        self._register(event, note, voice, continuations)
        queued = self._grace_queues.pop(voice, None)
        if queued:
            note.grace_notes = queued
        return note

    def _queue_grace(
        self,
        grace: MNXGrace,
        clef: str,
        time: tuple[int, int],
        voice: int,
        continuations: Continuations,
    ) -> None:
        queue = self._grace_queues.setdefault(voice, [])
        for idx, event in enumerate(grace.events):
            if event.rest is not None:
                raise MNXParseError(f"Grace event {event.event_id} cannot be a rest.")
            note = self._build_note(event, clef, time, grace=True)
            if idx == 0 and not queue:
                note.slash = grace.slash if grace.slash is not None else True
            self._register(event, note, voice, continuations)
            queue.append(note)

    def _translate_tuplet(
        self,
        tuplet: MNXTuplet,
        clef: str,
        time: tuple[int, int],
        voice: int,
        continuations: Continuations,
    ) -> tuple[list[RenderedNote], RenderedTuplet]:
        if not tuplet.events:
            raise MNXParseError("Tuplet object has no events.")
        inner = quarter_length(tuplet.inner.duration.base, tuplet.inner.duration.dots) * tuplet.inner.multiple
        outer = quarter_length(tuplet.outer.duration.base, tuplet.outer.duration.dots) * tuplet.outer.multiple
        scale = outer / inner

        notes = []
        for event in tuplet.events:
            if event.measure:
                raise MNXParseError("Tuplet object cannot contain a whole-measure event.")
            notes.append(self._translate_event(event, clef, time, voice, continuations, scale))

        rendered = RenderedTuplet(
            notes=tuple(notes),
            num_notes=tuplet.inner.multiple,
            notes_occupied=tuplet.outer.multiple,
            bracketed=tuplet.bracket != "no",
            ratioed=tuplet.show_value == "both",
            location=-1 if tuplet.orientation == "down" else 1,
        )
        return notes, rendered

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def translate(
        self,
        measure: MNXPartMeasure,
        clef: str,
        time: tuple[int, int],
        continuations: Continuations,
    ) -> tuple[list[list[RenderedNote]], list[RenderedTuplet]]:
        """
        Translate one measure of this part.

        Beam declarations of the measure are opened before any event is
        produced, so beams may refer to events of this or later measures.

        Returns:
            ``(voices, tuplets)``: one note list per sequence, and every
            tuplet grouping of the measure in order.
        """
        for ids in measure.beams:
            continuations.beams.open_beam(ids)

        voices: list[list[RenderedNote]] = []
        tuplets: list[RenderedTuplet] = []
        for voice, sequence in enumerate(measure.sequences):
            notes: list[RenderedNote] = []
            for item in sequence.content:
                if isinstance(item, MNXEvent):
                    notes.append(self._translate_event(item, clef, time, voice, continuations))
                elif isinstance(item, MNXTuplet):
                    tuplet_notes, tuplet = self._translate_tuplet(item, clef, time, voice, continuations)
                    notes.extend(tuplet_notes)
                    tuplets.append(tuplet)
                elif isinstance(item, MNXGrace):
                    self._queue_grace(item, clef, time, voice, continuations)
            voices.append(notes)
        return voices, tuplets

    def pending_grace_count(self) -> int:
        return sum(len(queue) for queue in self._grace_queues.values())

    def check_finished(self) -> None:
        """
        Raises:
            MNXParseError: If grace notes are still waiting for a main event.
        """
        count = self.pending_grace_count()
        if count:
            raise MNXParseError(f"{count} grace note(s) at end of score have no following event.")
