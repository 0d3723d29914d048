"""Shared pieces of the output renderers."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Mapping, Protocol

from reprodoc.errors import ReprodocError
from reprodoc.stitch.citations import CitationProcessor
from reprodoc.stitch.stitcher import StitchedDocument

logger = logging.getLogger(__name__)


class OutputRenderer(Protocol):
    name: str
    extension: str

    def render(
        self, document: StitchedDocument, options: Mapping[str, Any] | None = None
    ) -> str | bytes:  # pragma: no cover - structural protocol
        """Serialise a finalized document into one target format."""


def finalize(
    document: StitchedDocument,
    citations: CitationProcessor,
    diagnostics: list[ReprodocError],
    *,
    references_title: str = "References",
) -> StitchedDocument:
    """Resolve cross references and citations once, before any format is written."""
    text = document.crossrefs.resolve(document.text, diagnostics)
    text = citations.process(text, diagnostics)

    references = citations.references_section(references_title)
    if references:
        text = text.rstrip("\n") + "\n\n" + references
        logger.debug("Appended %d reference(s)", len(citations.cited))
    return dataclasses.replace(document, text=text)
