"""Trackers for beams, slurs and ties that stay open until every endpoint is produced."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Hashable, Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from mnxview.errors import MNXParseError, UnsupportedFeatureError
from mnxview.score_models import Beam, RenderedNote, Slur, Tie

logger = logging.getLogger(__name__)

SOURCE = "source"
DESTINATION = "destination"

SpanT = TypeVar("SpanT")


class ContinuationTracker(ABC, Generic[SpanT]):
    """Common surface of the three trackers."""

    @abstractmethod
    def observe(self, identifier: str, handle: Any) -> None:
        """Record that the event or note called ``identifier`` was produced as ``handle``."""

    @abstractmethod
    def flush(self) -> list[SpanT]:
        """Remove and return every span whose endpoints are all resolved."""

    @abstractmethod
    def pending_count(self) -> int:
        """Number of spans still waiting for an endpoint."""


# ── Beams ────────────────────────────────────────────────────────────────────

@dataclass(eq=False)
class _OpenBeam:
    remaining: set[str]
    partial: list[RenderedNote] = field(default_factory=list)


class BeamTracker(ContinuationTracker[Beam]):
    """
    Beams are declared up front as a complete set of event identifiers.

    Each observation removes the identifier from every open beam that waits
    for it and appends the handle, so members stay in observation (musical)
    order. A beam that completes with a single member is dropped.
    """

    def __init__(self) -> None:
        self._open: list[_OpenBeam] = []
        self._waiting: dict[str, list[_OpenBeam]] = {}

    def open_beam(self, ids: Iterable[str]) -> None:
        beam = _OpenBeam(remaining=set(ids))
        self._open.append(beam)
        for identifier in beam.remaining:
            self._waiting.setdefault(identifier, []).append(beam)

    def observe(self, identifier: str, handle: RenderedNote) -> None:
        for beam in self._waiting.pop(identifier, []):
            beam.remaining.discard(identifier)
            beam.partial.append(handle)

    def flush(self) -> list[Beam]:
        completed: list[Beam] = []
        still_open: list[_OpenBeam] = []
        for beam in self._open:
            if beam.remaining:
                still_open.append(beam)
            elif len(beam.partial) > 1:
                completed.append(Beam(notes=tuple(beam.partial)))
            else:
                logger.debug("Dropping beam with %d member(s)", len(beam.partial))
        self._open = still_open
        return completed

    def pending_count(self) -> int:
        return len(self._open)


# ── Slurs and ties ───────────────────────────────────────────────────────────

@dataclass(eq=False)
class _OpenSpan:
    source_id: str | None
    destination_id: str | None
    source: Any = None
    destination: Any = None
    source_missing: bool = True
    destination_missing: bool = True

    @property
    def resolved(self) -> bool:
        return not (self.source_missing or self.destination_missing)


class SpanTracker(ContinuationTracker[SpanT]):
    """
    Two-ended spans declared incrementally.

    A declaration either names both ends (``target``) or one end plus a
    ``location``: ``"outgoing"`` leaves the destination to the next
    ``"incoming"`` declaration, and an ``"incoming"`` with nothing to
    complete waits for the next ``"outgoing"``. One-sided declarations only
    pair within the same ``scope`` (the translator passes part and sequence,
    plus the pitch for ties) and pair first-in, first-out inside it.

    Open spans live in ``_spans``; ``_waiting`` maps an identifier to the
    span slots it resolves. Source and destination slots are checked
    independently, so one observation can close both roles.
    """

    kind = "Span"

    def __init__(self) -> None:
        self._spans: list[_OpenSpan] = []
        self._waiting: dict[str, list[tuple[_OpenSpan, str]]] = {}
        self._declared: set[tuple[str, str]] = set()
        self._awaiting_destination: dict[Hashable, deque[_OpenSpan]] = {}
        self._awaiting_source: dict[Hashable, deque[_OpenSpan]] = {}

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _register(self, span: _OpenSpan, identifier: str, role: str) -> None:
        self._waiting.setdefault(identifier, []).append((span, role))

    def _open(self, source_id: str | None, destination_id: str | None) -> _OpenSpan:
        span = _OpenSpan(source_id=source_id, destination_id=destination_id)
        self._spans.append(span)
        if source_id is not None:
            self._register(span, source_id, SOURCE)
        if destination_id is not None:
            self._register(span, destination_id, DESTINATION)
        return span

    def _declare_outgoing(self, identifier: str, scope: Hashable) -> None:
        waiting = self._awaiting_source.get(scope)
        if waiting:
            span = waiting.popleft()
            span.source_id = identifier
            self._register(span, identifier, SOURCE)
        else:
            self._awaiting_destination.setdefault(scope, deque()).append(self._open(identifier, None))

    def _declare_incoming(self, identifier: str, scope: Hashable) -> None:
        waiting = self._awaiting_destination.get(scope)
        if waiting:
            span = waiting.popleft()
            span.destination_id = identifier
            self._register(span, identifier, DESTINATION)
        else:
            self._awaiting_source.setdefault(scope, deque()).append(self._open(None, identifier))

    @abstractmethod
    def _materialize(self, spans: list[_OpenSpan]) -> list[SpanT]:
        """Turn resolved spans into rendered continuation objects."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def declare(
        self,
        identifier: str,
        target: str | None = None,
        location: str | None = None,
        scope: Hashable = None,
    ) -> None:
        """
        Declare a span starting (or, for ``incoming``, ending) at ``identifier``.

        Raises:
            UnsupportedFeatureError: If ``location`` is not a known keyword.
            MNXParseError: If neither ``target`` nor ``location`` is given.

        ``scope`` only matters for one-sided declarations.
        """
        if target is not None:
            key = (identifier, target)
        elif location is not None:
            key = (identifier, f"@{location}")
        else:
            raise MNXParseError(f"{self.kind} declaration on {identifier} needs a target or a location.")

        if key in self._declared:
            logger.debug("Suppressing duplicate %s declaration %s", self.kind.lower(), key)
            return
        if location is not None and target is None and location not in ("incoming", "outgoing"):
            raise UnsupportedFeatureError(f"{self.kind} location {location} not recognized.")
        self._declared.add(key)

        if target is not None:
            self._open(identifier, target)
        elif location == "outgoing":
            self._declare_outgoing(identifier, scope)
        else:
            self._declare_incoming(identifier, scope)

    def observe(self, identifier: str, handle: Any) -> None:
        for span, role in self._waiting.pop(identifier, []):
            if role == SOURCE:
                span.source = handle
                span.source_missing = False
            else:
                span.destination = handle
                span.destination_missing = False

    def flush(self) -> list[SpanT]:
        resolved = [span for span in self._spans if span.resolved]
        if not resolved:
            return []
        self._spans = [span for span in self._spans if not span.resolved]
        return self._materialize(resolved)

    def pending_count(self) -> int:
        return len(self._spans)


def _note_order(note: RenderedNote) -> int:
    return note.handle


class SlurTracker(SpanTracker[Slur]):
    """Slurs between events; handles are :class:`RenderedNote` objects."""

    kind = "Slur"

    def _materialize(self, spans: list[_OpenSpan]) -> list[Slur]:
        slurs = []
        for span in spans:
            first, last = sorted((span.source, span.destination), key=_note_order)
            slurs.append(Slur(first=first, last=last))
        return slurs


class TieTracker(SpanTracker[Tie]):
    """
    Ties between chord members; handles are ``(RenderedNote, note index)``.

    Ties resolved in the same flush that join the same two events are merged
    into one :class:`Tie` carrying every tied index.
    """

    kind = "Tie"

    def _materialize(self, spans: list[_OpenSpan]) -> list[Tie]:
        merged: dict[tuple[int, int], tuple[RenderedNote, RenderedNote, list[int], list[int]]] = {}
        for span in spans:
            (first, first_idx), (last, last_idx) = sorted(
                (span.source, span.destination), key=lambda pair: _note_order(pair[0])
            )
            entry = merged.setdefault((first.handle, last.handle), (first, last, [], []))
            entry[2].append(first_idx)
            entry[3].append(last_idx)
        return [
            Tie(first=first, last=last, first_indices=tuple(first_ids), last_indices=tuple(last_ids))
            for first, last, first_ids, last_ids in merged.values()
        ]


# ── Bundle ───────────────────────────────────────────────────────────────────

def _count(amount: int, noun: str) -> str:
    return f"{amount} {noun}" if amount == 1 else f"{amount} {noun}s"


@dataclass
class Continuations:
    """The three trackers of one document translation pass."""

    beams: BeamTracker = field(default_factory=BeamTracker)
    slurs: SlurTracker = field(default_factory=SlurTracker)
    ties: TieTracker = field(default_factory=TieTracker)

    def observe_event(self, identifier: str, handle: RenderedNote) -> None:
        self.beams.observe(identifier, handle)
        self.slurs.observe(identifier, handle)

    def observe_note(self, identifier: str, handle: RenderedNote, index: int) -> None:
        self.ties.observe(identifier, (handle, index))

    def flush(self) -> tuple[list[Beam], list[Slur], list[Tie]]:
        return self.beams.flush(), self.slurs.flush(), self.ties.flush()

    def pending_count(self) -> int:
        return self.beams.pending_count() + self.slurs.pending_count() + self.ties.pending_count()

    def check_resolved(self) -> None:
        """
        Raises:
            MNXParseError: If any beam, slur or tie never saw all its endpoints.
        """
        if self.pending_count() == 0:
            return
        outstanding = [
            _count(tracker.pending_count(), noun)
            for tracker, noun in ((self.beams, "beam"), (self.slurs, "slur"), (self.ties, "tie"))
            if tracker.pending_count()
        ]
        raise MNXParseError(f"Unresolved continuations at end of score: {', '.join(outstanding)}.")
