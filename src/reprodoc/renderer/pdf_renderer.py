"""Paginated PDF output laid out with PyMuPDF's Story engine."""

from __future__ import annotations

import html
import io
import logging
from typing import Any, Mapping

from reprodoc.stitch.stitcher import StitchedDocument

from .html_renderer import HTMLRenderer

logger = logging.getLogger(__name__)

try:  # pragma: no cover - optional import guard for environments without pymupdf
    import fitz  # type: ignore
except ImportError:  # pragma: no cover
    fitz = None


_PDF_CSS = """
body { font-family: serif; font-size: 11pt; line-height: 1.4; }
h1 { font-size: 20pt; margin-bottom: 4pt; }
h2 { font-size: 15pt; margin-top: 12pt; }
h3 { font-size: 13pt; }
pre { font-family: monospace; font-size: 9pt; background-color: #f3f3f3; padding: 4pt; }
code { font-family: monospace; }
blockquote { color: #555555; margin-left: 12pt; }
table { border-collapse: collapse; }
th, td { border: 0.5pt solid #888888; padding: 2pt 4pt; }
.authors, .date { color: #555555; }
"""


class PDFRenderer:
    """Render the finalized document as a paginated print-style PDF."""

    name = "pdf"
    extension = ".pdf"

    def __init__(self, paper: str = "a4", margin: float = 54.0) -> None:
        self.paper = paper
        self.margin = margin

    def render(self, document: StitchedDocument, options: Mapping[str, Any] | None = None) -> bytes:
        if fitz is None:
            raise RuntimeError("pymupdf is required for PDF output")

        options = options or {}
        paper = str(options.get("paper", self.paper))
        margin = float(options.get("margin", self.margin))

        page_html = self._page_html(document, toc=bool(options.get("toc", False)))
        archive = fitz.Archive(str(document.resource_dir)) if document.resource_dir is not None else None
        story = fitz.Story(html=page_html, user_css=_PDF_CSS, archive=archive)

        buffer = io.BytesIO()
        writer = fitz.DocumentWriter(buffer)
        mediabox = fitz.paper_rect(paper)
        where = mediabox + (margin, margin, -margin, -margin)

        pages = 0
        more = True
        while more:
            device = writer.begin_page(mediabox)
            more, _ = story.place(where)
            story.draw(device)
            writer.end_page()
            pages += 1
        writer.close()

        logger.debug("Laid out %d PDF page(s) on %s paper", pages, paper)
        return buffer.getvalue()

    def _page_html(self, document: StitchedDocument, *, toc: bool) -> str:
        metadata = document.metadata
        body = HTMLRenderer().render_body(document, embed_images=False)

        header = []
        if metadata.title:
            header.append(f"<h1>{html.escape(metadata.title)}</h1>")
        if metadata.authors:
            header.append(f'<p class="authors">{html.escape(", ".join(metadata.authors))}</p>')
        if metadata.date:
            header.append(f'<p class="date">{html.escape(metadata.date)}</p>')
        toc_html = body.toc if toc else ""
        return f"<body>{''.join(header)}{toc_html}{body.html}</body>"
