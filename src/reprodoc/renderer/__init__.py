"""Output renderers, one per target format."""

from __future__ import annotations

from reprodoc.config.settings import Settings, get_settings
from reprodoc.errors import UnsupportedFormat

from .base import OutputRenderer, finalize
from .html_renderer import HTMLRenderer
from .markdown_renderer import MarkdownRenderer
from .pdf_renderer import PDFRenderer

# Target format identifiers accepted in metadata and on the command line.
FORMAT_ALIASES = {
    "md": "md",
    "markdown": "md",
    "md_document": "md",
    "github_document": "md",
    "gfm": "md",
    "html": "html",
    "html_document": "html",
    "html_notebook": "html",
    "pdf": "pdf",
    "pdf_document": "pdf",
}


def canonical_format(name: str) -> str:
    try:
        return FORMAT_ALIASES[name.strip().lower()]
    except KeyError:
        raise UnsupportedFormat(name) from None


def get_renderer(name: str, settings: Settings | None = None) -> OutputRenderer:
    settings = settings or get_settings()
    fmt = canonical_format(name)
    if fmt == "md":
        return MarkdownRenderer()
    if fmt == "html":
        return HTMLRenderer()
    return PDFRenderer(paper=settings.pdf_paper, margin=settings.pdf_margin)


__all__ = [
    "FORMAT_ALIASES",
    "HTMLRenderer",
    "MarkdownRenderer",
    "OutputRenderer",
    "PDFRenderer",
    "canonical_format",
    "finalize",
    "get_renderer",
]
