"""Unit tests for renderers used by SheetExporter."""

from typing import Any

from mnxview.sheet_renderers import VexflowHtmlRenderer, VexflowMarkdownRenderer


def _sample_calls() -> list[dict[str, Any]]:
    return [
        {"op": "resize", "width": 1200.0, "height": 450.0},
        {
            "op": "stave",
            "id": "0:0",
            "x": 30.0,
            "y": 10.0,
            "width": 1140.0,
            "clef": "treble",
            "key": "C",
            "cancelKey": None,
            "time": "4/4",
            "beginBarline": "single",
            "endBarline": "end",
        },
        {"op": "beam", "notes": [1, 2]},
    ]


def test_vexflow_markdown_renderer_has_heading() -> None:
    renderer = VexflowMarkdownRenderer()
    content = renderer.render(title="My Song", draw_calls=_sample_calls())
    assert content.startswith("# My Song")


def test_vexflow_markdown_renderer_includes_container_and_script() -> None:
    renderer = VexflowMarkdownRenderer()
    content = renderer.render(title="Song", draw_calls=_sample_calls())
    assert '<div id="mnxview-score"></div>' in content
    assert 'id="mnxview-score-data"' in content
    assert 'type="module"' in content


def test_renderers_import_vexflow() -> None:
    for renderer in (VexflowHtmlRenderer(), VexflowMarkdownRenderer()):
        content = renderer.render(title="Song", draw_calls=_sample_calls())
        assert "cdn.jsdelivr.net/npm/vexflow" in content


def test_renderer_embeds_draw_calls() -> None:
    content = VexflowMarkdownRenderer().render(title="Song", draw_calls=_sample_calls())
    assert '"op":"stave"' in content
    assert '"time":"4/4"' in content
    assert '"notes":[1,2]' in content


def test_payload_cannot_close_the_script_tag() -> None:
    calls = [{"op": "stave", "clef": "</script><b>"}]
    content = VexflowHtmlRenderer().render(title="Song", draw_calls=calls)
    assert "</script><b>" not in content
    assert "<\\/script><b>" in content


def test_default_extensions() -> None:
    assert VexflowHtmlRenderer().default_extension == ".html"
    assert VexflowMarkdownRenderer().default_extension == ".md"


def test_html_title_in_title_tag_and_h1() -> None:
    html = VexflowHtmlRenderer().render(title="My Song", draw_calls=[])
    assert "<title>My Song</title>" in html
    assert "<h1>My Song</h1>" in html


def test_html_empty_title_no_h1() -> None:
    html = VexflowHtmlRenderer().render(title="", draw_calls=[])
    assert "<h1>" not in html


def test_html_escapes_ampersand() -> None:
    html = VexflowHtmlRenderer().render(title="Fur & Feathers", draw_calls=[])
    assert "Fur &amp; Feathers" in html
    assert "Fur & Feathers" not in html.replace("&amp;", "ESCAPED")


def test_html_escapes_angle_brackets() -> None:
    html = VexflowHtmlRenderer().render(title="<Cool> Song", draw_calls=[])
    assert "&lt;Cool&gt; Song" in html


def test_html_print_media_query_present() -> None:
    html = VexflowHtmlRenderer().render(title="", draw_calls=[])
    assert "@media print" in html


def test_html_is_valid_html_skeleton() -> None:
    html = VexflowHtmlRenderer().build_html("Skeleton", "<p>BODY_MARKER</p>")
    assert html.startswith("<!DOCTYPE html>")
    assert "</html>" in html
    assert "<body>" in html
    assert "BODY_MARKER" in html


def test_replay_attaches_beams_and_tuplets_before_formatting_voices() -> None:
    content = VexflowHtmlRenderer().render(title="Song", draw_calls=_sample_calls())
    formatting = content.index("formatToStave")
    assert content.index("new Beam(") < formatting
    assert content.index("new Tuplet(") < formatting
    assert formatting < content.index("spans.forEach((span) => span.setContext(context).draw())")
