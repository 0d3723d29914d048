"""Stitch evaluation results back into the narrative as intermediate Markdown."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from reprodoc.engine.context import EvaluationResult
from reprodoc.engine.renderables import kind_of, narrative_of
from reprodoc.parser.base import Document, Fragment, Metadata, NarrativeText

from .crossref import KIND_NAMES, CrossRef, CrossRefIndex

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n")


@dataclass(slots=True)
class StitchedDocument:
    metadata: Metadata
    text: str
    crossrefs: CrossRefIndex = field(default_factory=CrossRefIndex)
    source_path: Path | None = None
    resource_dir: Path | None = None


class Stitcher:
    """Turn a Document and its evaluation results into one Markdown text.

    ``resource_dir`` is the directory emitted documents live in; figure paths
    are written relative to it.
    """

    def __init__(self, resource_dir: Path | None = None) -> None:
        self.resource_dir = Path(resource_dir) if resource_dir is not None else None

    def stitch(self, document: Document, results: Iterable[EvaluationResult]) -> StitchedDocument:
        by_fragment = {id(r.fragment): r for r in results}
        crossrefs = CrossRefIndex()
        buffer: list[str] = []
        needs_gap = False

        for block in document.blocks:
            if isinstance(block, NarrativeText):
                text = self._render_narrative(block, by_fragment)
                if needs_gap and text and not text.startswith("\n"):
                    text = "\n" + text
                buffer.append(text)
                needs_gap = False
                continue

            chunk = self._render_fragment(block, by_fragment.get(id(block)), crossrefs)
            if not chunk:
                continue
            current = "".join(buffer)
            if not current or current.endswith("\n\n"):
                lead = ""
            elif current.endswith("\n"):
                lead = "\n"
            else:
                lead = "\n\n"
            buffer.append(f"{lead}{chunk}\n")
            needs_gap = True

        return StitchedDocument(
            metadata=document.metadata,
            text="".join(buffer),
            crossrefs=crossrefs,
            source_path=document.source_path,
            resource_dir=self.resource_dir,
        )

    # ------------------------------------------------------------------
    # Inline
    # ------------------------------------------------------------------

    def _render_narrative(self, block: NarrativeText, results: dict[int, EvaluationResult]) -> str:
        out: list[str] = []
        # Inline warnings and messages go after the paragraph they came from.
        pending: list[str] = []
        for part in block.parts:
            if isinstance(part, str):
                if pending:
                    brk = _PARAGRAPH_BREAK_RE.search(part)
                    if brk:
                        out.append(part[: brk.start()])
                        out.append("\n\n" + "\n\n".join(pending))
                        pending = []
                        part = part[brk.start():]
                out.append(part)
                continue
            result = results.get(id(part))
            out.append(self._render_inline(part, result))
            if result is not None and not result.skipped and part.options.result_handling != "hidden":
                pending.extend(_annotation("Warning", w) for w in result.warnings)
                pending.extend(_annotation("Message", m) for m in result.messages)

        text = "".join(out)
        if pending:
            text = text.rstrip("\n") + "\n\n" + "\n\n".join(pending) + "\n"
        return text

    def _render_inline(self, fragment: Fragment, result: EvaluationResult | None) -> str:
        if result is None or result.skipped:
            return f"`{fragment.code}`"
        if result.error:
            return f"**[{result.error}]**"
        handling = fragment.options.result_handling
        if handling == "hidden":
            return ""
        if handling == "asis":
            narrative = narrative_of(result.value)
            return narrative if narrative is not None else str(result.value)
        return str(result.value)

    # ------------------------------------------------------------------
    # Block
    # ------------------------------------------------------------------

    def _render_fragment(
        self, fragment: Fragment, result: EvaluationResult | None, crossrefs: CrossRefIndex
    ) -> str:
        options = fragment.options
        pieces: list[str] = []
        if options.display:
            pieces.append(_fence(fragment.code, fragment.engine))

        if result is None or result.skipped:
            return "\n\n".join(pieces)

        if options.result_handling != "hidden":
            if result.output.strip():
                if options.result_handling == "asis":
                    pieces.append(result.output.rstrip("\n"))
                else:
                    pieces.append(_fence(result.output.rstrip("\n")))

            if result.has_value:
                pieces.append(self._render_value(fragment, result, crossrefs))

            if result.figures:
                pieces.append(self._render_figures(fragment, result.figures, crossrefs))

            pieces.extend(_annotation("Warning", w) for w in result.warnings)
            pieces.extend(_annotation("Message", m) for m in result.messages)

        if result.error:
            pieces.append(_annotation("Error", result.error))
        return "\n\n".join(p for p in pieces if p)

    def _render_value(self, fragment: Fragment, result: EvaluationResult, crossrefs: CrossRefIndex) -> str:
        value = result.value
        narrative = narrative_of(value)
        if narrative is None:
            if fragment.options.result_handling == "asis":
                return str(value)
            return _fence(repr(value))

        kind = kind_of(value)
        if kind is None or not fragment.label:
            return narrative
        caption = fragment.options.caption or getattr(value, "caption", "") or ""
        ref = crossrefs.register(kind, fragment.label)
        if kind == "tbl":
            return _anchored(ref, f"{_caption_text(ref, caption)}\n\n{narrative}")
        return _anchored(ref, narrative)

    def _render_figures(self, fragment: Fragment, figures: list[Path], crossrefs: CrossRefIndex) -> str:
        caption = fragment.options.caption or ""
        ref = crossrefs.register("fig", fragment.label) if fragment.label else None
        alt = _caption_text(ref, caption) if ref else caption
        images = "\n\n".join(f"![{alt}]({self._relative(path)})" for path in figures)
        if ref is None:
            return images
        return _anchored(ref, images)

    def _relative(self, path: Path) -> str:
        if self.resource_dir is None:
            return Path(path).as_posix()
        try:
            return Path(os.path.relpath(path, self.resource_dir)).as_posix()
        except ValueError:
            return Path(path).as_posix()


def _fence(text: str, info: str = "") -> str:
    marker = "```"
    while marker in text:
        marker += "`"
    return f"{marker}{info}\n{text}\n{marker}"


def _annotation(kind: str, text: str) -> str:
    body = "\n> ".join(text.splitlines() or [""])
    return f"> **{kind}:** {body}"


def _caption_text(ref: CrossRef | None, caption: str) -> str:
    if ref is None:
        return caption
    prefix = f"{KIND_NAMES[ref.kind]} {ref.number}"
    return f"{prefix}: {caption}" if caption else prefix


def _anchored(ref: CrossRef, body: str) -> str:
    css = "figure" if ref.kind == "fig" else "table"
    return f'<div id="{ref.anchor}" class="{css}" markdown="1">\n\n{body}\n\n</div>'
