"""Parse literate Markdown (``.Rmd``/``.qmd``/``.md``) into Document IR."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from reprodoc.errors import InvalidFragmentOptions, UnterminatedFragment

from .base import Block, Document, Fragment, Metadata, NarrativeText
from .frontmatter import parse_frontmatter, split_frontmatter
from .options import parse_header, parse_options

logger = logging.getLogger(__name__)

_EXEC_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})\s*(\{\s*[A-Za-z][^`]*\})\s*$")
_PLAIN_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_INLINE_OPEN_RE = re.compile(r"(?<!`)(`+)(?!`)")
# The header must be followed by code, so a span like `{a, b}` stays prose.
_INLINE_HEADER_RE = re.compile(r"\{\s*[A-Za-z][\w.+-]*(?:[\s,][^}]*)?\}(?=\s+[^\s`])")
_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n")


@dataclass(slots=True)
class _Segment:
    text: str
    line: int
    verbatim: bool = False


class SourceParser:
    """Parse a literate document into the Document IR."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def parse(self, input_path: Path) -> Document:
        input_path = Path(input_path)
        raw = input_path.read_text(encoding=self.encoding)
        return self.parse_text(raw, source_path=input_path)

    def parse_text(self, text: str, source_path: Path | None = None) -> Document:
        text = text.replace("\r\n", "\n")
        frontmatter, body, body_line = split_frontmatter(text)
        meta = parse_frontmatter(frontmatter or "")

        blocks = _parse_blocks(body, body_line)
        logger.debug(
            "Parsed %s: %d blocks, %d fragments",
            source_path or "<text>",
            len(blocks),
            sum(1 if isinstance(b, Fragment) else len(b.fragments) for b in blocks),
        )
        return Document(metadata=Metadata(meta), blocks=blocks, source_path=source_path)


# ---------------------------------------------------------------------------
# Block fragments
# ---------------------------------------------------------------------------

def _parse_blocks(body: str, first_line: int) -> list[Block]:
    lines = body.splitlines(keepends=True)
    blocks: list[Block] = []
    pending: list[_Segment] = []
    i = 0

    while i < len(lines):
        line_no = first_line + i
        line = lines[i]

        exec_m = _EXEC_FENCE_RE.match(line.rstrip("\n"))
        if exec_m:
            marker = exec_m.group(1)
            close = _find_closing_fence(lines, i + 1, marker)
            if close == -1:
                raise UnterminatedFragment(line_no)
            if pending:
                blocks.append(_narrative(pending))
                pending = []
            code = "".join(lines[i + 1:close])
            blocks.append(_make_fragment(exec_m.group(2), code, "block", line_no))
            i = close + 1
            continue

        plain_m = _PLAIN_FENCE_RE.match(line)
        if plain_m:
            # Ordinary fenced code stays narrative and is never scanned for inline fragments.
            close = _find_closing_fence(lines, i + 1, plain_m.group(1))
            end = len(lines) if close == -1 else close + 1
            pending.append(_Segment("".join(lines[i:end]), line_no, verbatim=True))
            i = end
            continue

        if pending and not pending[-1].verbatim:
            pending[-1].text += line
        else:
            pending.append(_Segment(line, line_no))
        i += 1

    if pending:
        blocks.append(_narrative(pending))
    return blocks


def _find_closing_fence(lines: list[str], start: int, marker: str) -> int:
    closing = re.compile(rf"^ {{0,3}}{re.escape(marker[0])}{{{len(marker)},}}\s*$")
    for idx in range(start, len(lines)):
        if closing.match(lines[idx].rstrip("\n")):
            return idx
    return -1


def _make_fragment(header: str, code: str, kind: str, line: int) -> Fragment:
    engine, option_text = parse_header(header)
    try:
        options, body = parse_options(option_text, code)
    except ValueError as exc:
        raise InvalidFragmentOptions(line, str(exc)) from exc
    offset = len(code.splitlines()) - len(body.splitlines())
    if kind == "block":
        body = body.rstrip("\n")
    return Fragment(code=body, options=options, kind=kind, engine=engine, line=line, code_offset=offset)


# ---------------------------------------------------------------------------
# Narrative text and inline fragments
# ---------------------------------------------------------------------------

def _narrative(segments: list[_Segment]) -> NarrativeText:
    parts: list[str | Fragment] = []
    for segment in segments:
        if segment.verbatim:
            parts.append(segment.text)
        else:
            parts.extend(_split_inline(segment.text, segment.line))

    merged: list[str | Fragment] = []
    for part in parts:
        if isinstance(part, str) and merged and isinstance(merged[-1], str):
            merged[-1] += part
        elif part != "":
            merged.append(part)
    return NarrativeText(parts=tuple(merged))


def _split_inline(text: str, first_line: int) -> list[str | Fragment]:
    """Split prose into strings and inline fragments such as `` `{python} 2+2` ``."""
    parts: list[str | Fragment] = []
    cursor = 0
    pos = 0

    while True:
        m = _INLINE_OPEN_RE.search(text, pos)
        if not m:
            break
        ticks = m.group(1)
        content_start = m.end()
        is_fragment = bool(_INLINE_HEADER_RE.match(text, content_start))

        limit_m = _PARAGRAPH_BREAK_RE.search(text, content_start)
        limit = limit_m.start() if limit_m else len(text)
        closer = re.compile(rf"(?<!`){ticks}(?!`)").search(text, content_start, limit)

        if closer is None:
            if is_fragment:
                raise UnterminatedFragment(first_line + text.count("\n", 0, m.start()), kind="inline")
            pos = content_start
            continue

        if is_fragment:
            line_no = first_line + text.count("\n", 0, m.start())
            header_m = _INLINE_HEADER_RE.match(text, content_start)
            code = text[header_m.end():closer.start()].strip()
            parts.append(text[cursor:m.start()])
            parts.append(
                _make_fragment(
                    header_m.group(0),
                    code,
                    "inline",
                    line_no,
                )
            )
            cursor = closer.end()
        pos = closer.end()

    parts.append(text[cursor:])
    return parts


