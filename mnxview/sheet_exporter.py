"""SheetExporter: converts MNX files to HTML or Markdown sheet outputs."""

from __future__ import annotations

import json
from typing import Any, Final, cast

from mnxview.backends import RecordingBackend
from mnxview.driver import translate_document
from mnxview.errors import MNXParseError
from mnxview.layout import LayoutOptions
from mnxview.score_models import ScoreLayout
from mnxview.sheet_renderers import (
    SheetRenderer,
    VexflowHtmlRenderer,
    VexflowMarkdownRenderer,
)

SUPPORTED_FORMATS: Final[set[str]] = {"html", "md-vexflow"}


class SheetExporter:
    """
    Lay out an MNX document and write it through a pluggable renderer.

    Supported formats:
    - ``html``: self-contained HTML page replaying the layout with VexFlow.
    - ``md-vexflow``: markdown file with the same embedded VexFlow script.
    """

    def __init__(
        self,
        title: str = "",
        output_format: str = "html",
        options: LayoutOptions | None = None,
    ) -> None:
        self.title = title
        normalized = output_format.strip().lower()
        if normalized not in SUPPORTED_FORMATS:
            supported = ", ".join(sorted(SUPPORTED_FORMATS))
            raise ValueError(f"Unsupported output format '{output_format}'. Use one of: {supported}.")
        self.output_format = normalized
        self.options = options or LayoutOptions()
        self.renderer = self._build_renderer(normalized)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_renderer(self, output_format: str) -> SheetRenderer:
        if output_format == "html":
            return VexflowHtmlRenderer()
        return VexflowMarkdownRenderer()

    def _load_document(self, mnx_path: str) -> Any:
        with open(mnx_path, encoding="utf-8") as fh:
            try:
                return json.load(fh)
            except json.JSONDecodeError as exc:
                raise MNXParseError(f"Bad JSON: {exc}") from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def layout(self, document: Any) -> ScoreLayout:
        """Lay out a decoded MNX document onto a fresh recording backend."""
        return translate_document(document, backend=RecordingBackend(), options=self.options)

    def render(self, document: Any) -> str:
        """Lay out a decoded MNX document and return the page content."""
        backend = cast(RecordingBackend, self.layout(document).backend)
        return self.renderer.render(title=self.title, draw_calls=backend.payload())

    def export(self, mnx_path: str, output_path: str) -> None:
        """
        Convert an MNX file into the selected sheet format and write it to disk.

        Raises:
            MNXParseError: If the file is not valid JSON or not valid MNX.
            UnsupportedFeatureError: If the score uses unsupported notation.
            OSError: If a file cannot be read or written.
        """
        content = self.render(self._load_document(mnx_path))
        with open(output_path, "w", encoding="utf-8") as fh:
            fh.write(content)
