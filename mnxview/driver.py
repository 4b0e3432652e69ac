"""Document driver: walks an MNX score measure by measure and lays it out."""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any

from mnxview.backends import RenderBackend
from mnxview.continuations import Continuations
from mnxview.errors import MNXError
from mnxview.layout import LayoutEngine, LayoutOptions
from mnxview.measure_translator import MeasureTranslator
from mnxview.mnx_models import MNXDocument
from mnxview.mnx_reader import read_document
from mnxview.notation import COMMON_TIME, DEFAULT_CLEF, DEFAULT_FIFTHS, key_for_fifths
from mnxview.score_models import GlobalMeasureAttributes, PartMeasure, ScoreLayout, StaveSpec, SystemMeasure

logger = logging.getLogger(__name__)

SUCCESS = "Success!"
BAD_JSON = "Bad JSON"


def global_attributes(document: MNXDocument) -> list[GlobalMeasureAttributes]:
    """Resolve the running time signature and key of every measure index."""
    time = COMMON_TIME
    key = key_for_fifths(DEFAULT_FIFTHS)
    count = len(document.global_measures)

    attributes = []
    for idx, measure in enumerate(document.global_measures):
        if measure.time is not None:
            time = measure.time
        previous_key = None
        if measure.fifths is not None:
            previous_key = key
            key = key_for_fifths(measure.fifths)
        attributes.append(
            GlobalMeasureAttributes(
                index=idx,
                time=time,
                key=key,
                time_changed=measure.time is not None,
                previous_key=previous_key,
                key_changed=measure.fifths is not None,
                first=idx == 0,
                last=idx == count - 1,
                repeat_start=measure.repeat_start,
                repeat_end=measure.repeat_end,
            )
        )
    return attributes


def _stave_for(attributes: GlobalMeasureAttributes, clef: str, clef_changed: bool) -> StaveSpec:
    stave = StaveSpec()
    if attributes.first or clef_changed:
        stave.clef = clef
    if attributes.first or attributes.key_changed:
        stave.key = attributes.key
        if not attributes.first:
            stave.cancel_key = attributes.previous_key
    if attributes.first or attributes.time_changed:
        stave.time = attributes.time
    if attributes.repeat_start:
        stave.begin_barline = "repeatBegin"
    if attributes.repeat_end:
        stave.end_barline = "repeatEnd"
    elif attributes.last:
        stave.end_barline = "end"
    return stave


class DocumentDriver:
    """
    One translation pass over a document.

    Owns the continuation trackers, one :class:`MeasureTranslator` per part
    and the :class:`LayoutEngine`. Parts are visited in lockstep: every part
    of measure *n* is translated before measure *n + 1*, and the pending
    measures are flushed into the layout whenever no beam, slur or tie is
    left open. Create a new driver for every document.
    """

    def __init__(self, backend: RenderBackend | None = None, options: LayoutOptions | None = None) -> None:
        self.continuations = Continuations()
        self.layout = LayoutEngine(options=options, backend=backend)
        self._handles = itertools.count(1)

    def run(self, document: MNXDocument) -> ScoreLayout:
        """
        Translate and lay out ``document``.

        Raises:
            MNXParseError: If a continuation or grace note is left dangling.
            UnsupportedFeatureError: For constructs the engraver cannot draw.
        """
        translators = [MeasureTranslator(self._handles, part_index=idx) for idx in range(len(document.parts))]
        clefs = [DEFAULT_CLEF for _ in document.parts]

        for attributes in global_attributes(document):
            part_measures = []
            for part_idx, part in enumerate(document.parts):
                measure = part.measures[attributes.index]
                if measure.clef is not None:
                    clefs[part_idx] = measure.clef
                voices, tuplets = translators[part_idx].translate(
                    measure, clefs[part_idx], attributes.time, self.continuations
                )
                part_measures.append(
                    PartMeasure(
                        part_index=part_idx,
                        clef=clefs[part_idx],
                        time=attributes.time,
                        voices=voices,
                        tuplets=tuplets,
                        stave=_stave_for(attributes, clefs[part_idx], measure.clef is not None),
                    )
                )

            self.layout.add_measure(SystemMeasure(attributes=attributes, parts=part_measures))
            self.layout.add_spans(*self.continuations.flush())
            pending = self.continuations.pending_count()
            if pending == 0:
                self.layout.flush_pending()
            else:
                logger.debug("Measure %d buffered, %d continuation(s) open", attributes.index, pending)

        self.continuations.check_resolved()
        for translator in translators:
            translator.check_finished()
        return self.layout.finish()


def translate_document(
    obj: Any,
    backend: RenderBackend | None = None,
    options: LayoutOptions | None = None,
) -> ScoreLayout:
    """
    Validate a decoded MNX document and lay it out onto ``backend``.

    Raises:
        MNXParseError: If the document is malformed.
        UnsupportedFeatureError: If it uses a construct not implemented yet.
    """
    document = read_document(obj)
    return DocumentDriver(backend=backend, options=options).run(document)


def convert_mnx(text: str, backend: RenderBackend | None = None, options: LayoutOptions | None = None) -> str:
    """
    Lay out MNX JSON text and return a one-line status.

    Returns ``"Success!"``, ``"Bad JSON"`` or the categorized error message.
    Errors outside the two MNX categories propagate.
    """
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return BAD_JSON

    try:
        translate_document(obj, backend=backend, options=options)
    except MNXError as exc:
        return exc.describe()
    return SUCCESS
