"""LayoutEngine: buffers translated measures, sizes them and justifies them into lines."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final, Union

import numpy as np

from mnxview.backends import RecordingBackend, RenderBackend
from mnxview.errors import MNXParseError
from mnxview.formatter import content_start, has_content, min_content_width
from mnxview.notation import STEM_DOWN
from mnxview.score_models import Beam, Line, Position, RenderedNote, ScoreLayout, Slur, SystemMeasure, Tie

logger = logging.getLogger(__name__)

Span = Union[Beam, Slur, Tie]

# Stave geometry (canvas units, VexFlow defaults): four line-spaces of head
# room above the top line, ten units between lines.
STAVE_MIDDLE_LINE: Final[float] = 60.0
STAVE_BOTTOM_LINE: Final[float] = 80.0
HALF_LINE_SPACING: Final[float] = 5.0
STEM_LENGTH: Final[float] = 35.0


@dataclass(frozen=True)
class LayoutOptions:
    """Canvas and spacing settings of a layout pass."""

    sheet_width: float = 1200.0
    sheet_height: float = 450.0
    default_measure_width: float = 350.0
    minimum_measure_width: float = 150.0
    part_spacing: float = 100.0
    top_margin: float = 10.0
    width_factor: float = 1.2
    safety_margin: float = 0.05
    line_spacing: float = 40.0

    @property
    def line_width(self) -> float:
        """Width every justified line adds up to."""
        return self.sheet_width * (1.0 - self.safety_margin)

    @property
    def left_margin(self) -> float:
        return (self.sheet_width - self.line_width) / 2.0


def _span_notes(span: Span) -> tuple[RenderedNote, ...]:
    if isinstance(span, Beam):
        return span.notes
    return (span.first, span.last)


class LayoutEngine:
    """
    Two-stage measure buffer.

    Measures wait in the *pending queue* while any beam, slur or tie that
    touches them is open, since their content is not final until then.
    :meth:`flush_pending` sizes each of them and moves them into the *line
    queue*, emitting (justifying and drawing) the current line first when
    the next measure would overflow the sheet. :meth:`finish` emits the
    last, partial line.

    One engine serves one document pass.
    """

    def __init__(self, options: LayoutOptions | None = None, backend: RenderBackend | None = None) -> None:
        self.options = options or LayoutOptions()
        self.backend = backend if backend is not None else RecordingBackend()
        self.position = Position(x=0.0, y=self.options.top_margin)
        self.lines: list[Line] = []
        self._pending: list[SystemMeasure] = []
        self._pending_spans: list[Span] = []
        self._line_queue: list[SystemMeasure] = []
        self._span_queue: list[Span] = []
        self._placed: set[int] = set()
        self._content_bottom = self.options.top_margin
        self.backend.resize(self.options.sheet_width, self.options.sheet_height)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _mark_line_start(self, measure: SystemMeasure) -> None:
        """Repeat clef and key on every stave that does not draw them already."""
        measure.line_start = True
        for part in measure.parts:
            if part.stave.clef is None:
                part.stave.clef = part.clef
            if part.stave.key is None:
                part.stave.key = measure.attributes.key

    def _justify(self, widths: list[float]) -> list[float]:
        provisional = np.asarray(widths, dtype=float)
        factor = self.options.line_width / provisional.sum()
        return (provisional * factor).tolist()

    def _note_extent(self, stave_y: float, note: RenderedNote) -> float:
        lowest = max(
            stave_y + STAVE_MIDDLE_LINE - position * HALF_LINE_SPACING for position in note.staff_positions
        )
        if not note.rest and note.stem_direction == STEM_DOWN:
            return lowest + STEM_LENGTH
        return lowest + HALF_LINE_SPACING

    def _note_top(self, stave_y: float, note: RenderedNote) -> float:
        highest = min(
            stave_y + STAVE_MIDDLE_LINE - position * HALF_LINE_SPACING for position in note.staff_positions
        )
        if not note.rest and note.stem_direction != STEM_DOWN:
            return highest - STEM_LENGTH
        return highest - HALF_LINE_SPACING

    def _line_top(self, measures: list[SystemMeasure], line_y: float) -> float:
        """Highest point of the notes of ``measures`` with the first stave at ``line_y``."""
        top = line_y
        for measure in measures:
            for part in measure.parts:
                stave_y = line_y + part.part_index * self.options.part_spacing
                for voice in part.voices:
                    for note in voice:
                        for member in (note, *note.grace_notes):
                            top = min(top, self._note_top(stave_y, member))
        return top

    def _line_bottom(self, measures: list[SystemMeasure]) -> float:
        bottom = 0.0
        for measure in measures:
            for part in measure.parts:
                stave_y = part.stave.y
                bottom = max(bottom, stave_y + STAVE_BOTTOM_LINE)
                for voice in part.voices:
                    for note in voice:
                        for member in (note, *note.grace_notes):
                            bottom = max(bottom, self._note_extent(stave_y, member))
        return bottom

    def _mark_placed(self, note: RenderedNote) -> None:
        self._placed.add(note.handle)
        for grace in note.grace_notes:
            self._placed.add(grace.handle)

    def _draw_ready_spans(self) -> None:
        waiting: list[Span] = []
        for span in self._span_queue:
            if not all(note.handle in self._placed for note in _span_notes(span)):
                waiting.append(span)
            elif isinstance(span, Beam):
                self.backend.draw_beam(span)
            elif isinstance(span, Slur):
                self.backend.draw_slur(span)
            else:
                self.backend.draw_tie(span)
        self._span_queue = waiting

    def _emit_line(self) -> None:
        queue = self._line_queue
        widths = self._justify([m.required_width or self.options.default_measure_width for m in queue])
        line_y = self.position.y
        # notes above the stave head room push the whole line down
        line_y += line_y - self._line_top(queue, line_y)

        x = self.options.left_margin
        for measure, width in zip(queue, widths):
            measure.width = width
            index = measure.attributes.index
            for part in measure.parts:
                part.stave.x = x
                part.stave.y = line_y + part.part_index * self.options.part_spacing
                part.stave.width = width
                self.backend.draw_stave(index, part)
                self.backend.draw_voices(index, part)
                for voice in part.voices:
                    for note in voice:
                        self._mark_placed(note)
            if measure.line_start and measure.parts:
                self.backend.draw_connector(index, measure.parts[0].part_index, measure.parts[-1].part_index)
            x += width

        for measure in queue:
            for part in measure.parts:
                for tuplet in part.tuplets:
                    self.backend.draw_tuplet(tuplet)
        self._draw_ready_spans()

        bottom = self._line_bottom(queue)
        line = Line(
            index=len(self.lines),
            y=line_y,
            bottom=bottom,
            measures=tuple(queue),
            widths=tuple(widths),
        )
        self.lines.append(line)
        logger.debug(
            "Emitted line %d with measures %s",
            line.index,
            [m.attributes.index for m in queue],
        )

        self._content_bottom = max(self._content_bottom, bottom)
        self._line_queue = []
        self.position.x = 0.0
        self.position.y = bottom + self.options.line_spacing

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def required_width(self, measure: SystemMeasure) -> float:
        """
        Width a measure needs, before justification.

        The widest part decides: header offset plus the minimum content
        width inflated by ``width_factor``, clamped between the minimum
        measure width and the usable line width.
        """
        options = self.options
        widths = [
            content_start(part.stave) + min_content_width(part) * options.width_factor
            for part in measure.parts
            if has_content(part)
        ]
        if not widths:
            return options.default_measure_width
        return float(np.clip(max(widths), options.minimum_measure_width, options.line_width))

    def add_measure(self, measure: SystemMeasure) -> None:
        self._pending.append(measure)

    def add_spans(self, beams: list[Beam], slurs: list[Slur], ties: list[Tie]) -> None:
        """Queue completed continuations; they are drawn once their notes are placed."""
        self._pending_spans.extend(beams)
        self._pending_spans.extend(slurs)
        self._pending_spans.extend(ties)

    def pending_count(self) -> int:
        return len(self._pending)

    def flush_pending(self) -> None:
        """Size every pending measure and move it into the line, reflowing as needed."""
        for measure in self._pending:
            width = self.required_width(measure)
            if self._line_queue and self.position.x + width > self.options.sheet_width:
                logger.debug(
                    "Reflow before measure %d (x=%.1f, width=%.1f)",
                    measure.attributes.index,
                    self.position.x,
                    width,
                )
                self._emit_line()
            if not self._line_queue:
                self._mark_line_start(measure)
                width = self.required_width(measure)
            measure.required_width = width
            self._line_queue.append(measure)
            self.position.x += width
        self._pending = []
        self._span_queue.extend(self._pending_spans)
        self._pending_spans = []

    def finish(self) -> ScoreLayout:
        """
        Emit the last line and size the canvas.

        Raises:
            MNXParseError: If measures are still waiting on open continuations.
        """
        if self._pending:
            raise MNXParseError(
                f"{len(self._pending)} measure(s) still wait for open continuations at end of score."
            )
        if self._line_queue:
            self._emit_line()

        height = self.options.sheet_height
        needed = self._content_bottom + self.options.line_spacing
        if needed > height:
            height = needed
            self.backend.resize(self.options.sheet_width, height)
        return ScoreLayout(lines=self.lines, width=self.options.sheet_width, height=height, backend=self.backend)
