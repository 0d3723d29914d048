"""Markdown target: the finalized intermediate document itself."""

from __future__ import annotations

from typing import Any, Mapping

from reprodoc.parser.frontmatter import dump_frontmatter
from reprodoc.stitch.stitcher import StitchedDocument


class MarkdownRenderer:
    name = "md"
    extension = ".md"

    def render(self, document: StitchedDocument, options: Mapping[str, Any] | None = None) -> str:
        options = options or {}
        if options.get("preserve_yaml") and document.metadata.values:
            header = dump_frontmatter(dict(document.metadata.values))
            return f"---\n{header}\n---\n\n{document.text}"
        return document.text
