"""Renderer implementations that replay recorded draw calls with VexFlow."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

VEXFLOW_URL = "https://cdn.jsdelivr.net/npm/vexflow@4.2.3/build/esm/entry/vexflow.js"


def _escape_html(text: str) -> str:
    """Escape the three characters that are unsafe in HTML text content."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _payload_json(draw_calls: list[dict[str, Any]]) -> str:
    payload = json.dumps(draw_calls, separators=(",", ":"))
    return payload.replace("</", "<\\/")


def _replay_script(draw_calls: list[dict[str, Any]]) -> str:
    """
    Container, JSON payload and module script that replays ``draw_calls``.

    The script walks the calls in order: ``resize`` sizes the SVG canvas,
    ``stave`` draws a stave, ``voices`` builds the notes of a measure, and
    the span calls (``tuplet``, ``beam``, ``slur``, ``tie``) look notes up
    by their handle number. Voices are formatted and drawn only after the
    walk, once every beam and tuplet is attached to its notes; the spans
    are drawn last.
    """
    return f"""<div id="mnxview-score"></div>
<script id="mnxview-score-data" type="application/json">{_payload_json(draw_calls)}</script>
<script type="module">
  import {{
    Accidental,
    Articulation,
    Barline,
    Beam,
    Curve,
    Dot,
    Formatter,
    GraceNote,
    GraceNoteGroup,
    Modifier,
    Renderer,
    Stave,
    StaveConnector,
    StaveNote,
    StaveTie,
    Tuplet,
    Voice
  }} from "{VEXFLOW_URL}";

  const host = document.getElementById("mnxview-score");
  const payloadNode = document.getElementById("mnxview-score-data");

  if (!host || !payloadNode) {{
    throw new Error("Missing VexFlow score container.");
  }}

  const calls = JSON.parse(payloadNode.textContent || "[]");
  const renderer = new Renderer(host, Renderer.Backends.SVG);
  const context = renderer.getContext();
  const staves = new Map();
  const notes = new Map();
  const barlines = {{
    single: Barline.type.SINGLE,
    end: Barline.type.END,
    repeatBegin: Barline.type.REPEAT_BEGIN,
    repeatEnd: Barline.type.REPEAT_END,
  }};

  const buildNote = (entry, NoteClass) => {{
    const suffix = "d".repeat(entry.dots) + (entry.rest ? "r" : "");
    const note = new NoteClass({{
      clef: entry.clef,
      keys: entry.keys,
      duration: entry.duration + suffix,
      stem_direction: entry.stem,
      slash: Boolean(entry.slash),
    }});

    entry.accidentals.forEach(([index, symbol]) => {{
      note.addModifier(new Accidental(symbol), index);
    }});
    for (let i = 0; i < entry.dots; i++) {{
      Dot.buildAndAttach([note], {{ all: true }});
    }}

    const position = entry.articulationPosition === "above"
      ? Modifier.Position.ABOVE
      : Modifier.Position.BELOW;
    entry.articulations.forEach((code) => {{
      note.addModifier(new Articulation(code).setPosition(position), 0);
    }});

    if (Array.isArray(entry.grace) && entry.grace.length > 0) {{
      const graceNotes = entry.grace.map((grace) => buildNote(grace, GraceNote));
      note.addModifier(new GraceNoteGroup(graceNotes, true).beamNotes(), 0);
    }}

    notes.set(entry.handle, note);
    return note;
  }};

  const lookup = (handles) => handles.map((handle) => notes.get(handle));
  const measures = [];
  const spans = [];

  // Beams and tuplets must exist before any voice is formatted.
  calls.forEach((call) => {{
    switch (call.op) {{
      case "resize":
        renderer.resize(call.width, call.height);
        break;
      case "stave": {{
        const stave = new Stave(call.x, call.y, call.width);
        if (call.clef) stave.addClef(call.clef);
        if (call.key) stave.addKeySignature(call.key, call.cancelKey || undefined);
        if (call.time) stave.addTimeSignature(call.time);
        stave.setBegBarType(barlines[call.beginBarline]);
        stave.setEndBarType(barlines[call.endBarline]);
        stave.setContext(context).draw();
        staves.set(call.id, stave);
        break;
      }}
      case "voices":
        measures.push({{
          stave: staves.get(call.stave),
          beats: call.beats,
          beatValue: call.beatValue,
          voices: call.voices
            .filter((entries) => entries.length > 0)
            .map((entries) => entries.map((entry) => buildNote(entry, StaveNote))),
        }});
        break;
      case "connector": {{
        const connector = new StaveConnector(staves.get(call.top), staves.get(call.bottom));
        connector.setType(StaveConnector.type.SINGLE_LEFT);
        connector.setContext(context).draw();
        break;
      }}
      case "tuplet":
        spans.push(new Tuplet(lookup(call.notes), {{
          num_notes: call.numNotes,
          notes_occupied: call.notesOccupied,
          bracketed: call.bracketed,
          ratioed: call.ratioed,
          location: call.location,
        }}));
        break;
      case "beam":
        spans.push(new Beam(lookup(call.notes)));
        break;
      case "slur":
        spans.push(new Curve(notes.get(call.first), notes.get(call.last), {{}}));
        break;
      case "tie":
        spans.push(new StaveTie({{
          first_note: notes.get(call.first),
          last_note: notes.get(call.last),
          first_indices: call.firstIndices,
          last_indices: call.lastIndices,
        }}));
        break;
      default:
        throw new Error(`Unknown draw call ${{call.op}}.`);
    }}
  }});

  measures.forEach((measure) => {{
    const voices = measure.voices.map((tickables) => {{
      const voice = new Voice({{ num_beats: measure.beats, beat_value: measure.beatValue }});
      voice.setMode(Voice.Mode.SOFT);
      voice.addTickables(tickables);
      return voice;
    }});
    if (voices.length > 0) {{
      new Formatter().joinVoices(voices).formatToStave(voices, measure.stave);
      voices.forEach((voice) => voice.draw(context, measure.stave));
    }}
  }});

  spans.forEach((span) => span.setContext(context).draw());
</script>"""


class SheetRenderer(ABC):
    """Abstract sheet renderer."""

    @property
    @abstractmethod
    def default_extension(self) -> str:
        """Default filename extension for this renderer."""

    @abstractmethod
    def render(self, *, title: str, draw_calls: list[dict[str, Any]]) -> str:
        """Render recorded draw calls into a file content string."""


class VexflowHtmlRenderer(SheetRenderer):
    """Render draw calls into a self-contained HTML page with a VexFlow script."""

    @property
    def default_extension(self) -> str:
        return ".html"

    def render(self, *, title: str, draw_calls: list[dict[str, Any]]) -> str:
        return self.build_html(title, _replay_script(draw_calls))

    def build_html(self, title: str, body: str) -> str:
        """
        Wrap the score markup in an HTML document.

        The stylesheet covers screen (white card on a grey background) and
        print (no shadow, full width).
        """
        title_safe = _escape_html(title)
        heading = f"  <h1>{title_safe}</h1>\n" if title else ""

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{title_safe}</title>
  <style>
    *, *::before, *::after {{ box-sizing: border-box; }}
    body {{
      font-family: Georgia, serif;
      background: #f0f0f0;
      margin: 0;
      padding: 2rem;
    }}
    h1 {{
      text-align: center;
      font-size: 1.6rem;
      margin-bottom: 2rem;
      color: #222;
    }}
    #mnxview-score {{
      background: #fff;
      box-shadow: 0 2px 8px rgba(0, 0, 0, 0.15);
      margin: 0 auto 3rem;
      overflow-x: auto;
      padding: 1rem;
      width: fit-content;
    }}
    @media print {{
      body {{
        background: #fff;
        padding: 0;
        margin: 0;
      }}
      #mnxview-score {{
        box-shadow: none;
        padding: 0;
        margin: 0;
      }}
    }}
  </style>
</head>
<body>
{heading}{body}
</body>
</html>"""


class VexflowMarkdownRenderer(SheetRenderer):
    """Render draw calls into Markdown with an embedded VexFlow script."""

    @property
    def default_extension(self) -> str:
        return ".md"

    def render(self, *, title: str, draw_calls: list[dict[str, Any]]) -> str:
        title_safe = _escape_html(title)
        return f"""# {title_safe}

This Markdown uses embedded JavaScript + VexFlow. Open it in a Markdown viewer that allows script execution.

<style>
  #mnxview-score {{
    border: 1px solid #d8d8d8;
    border-radius: 8px;
    background: #ffffff;
    padding: 0.5rem;
    overflow-x: auto;
  }}
</style>

{_replay_script(draw_calls)}
"""
