"""Cross references between narrative text and labeled fragment output."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterator

from reprodoc.errors import ReprodocError, UnresolvedReference

logger = logging.getLogger(__name__)

KIND_NAMES = {"fig": "Figure", "tbl": "Table"}

_REF_RE = re.compile(r"(?<![\w@/])@((?:fig|tbl)-[A-Za-z0-9_](?:[\w-]*[A-Za-z0-9_])?)")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})[^\n]*\n.*?(?:^ {0,3}\1[`~]*[ \t]*$|\Z)", re.M | re.S)
_CODE_SPAN_RE = re.compile(r"(?<!`)(`+)(?!`).+?(?<!`)\1(?!`)", re.S)


@dataclass(frozen=True, slots=True)
class CrossRef:
    kind: str
    anchor: str
    number: int

    @property
    def text(self) -> str:
        return f"{KIND_NAMES[self.kind]} {self.number}"


def anchor_for(kind: str, label: str) -> str:
    """Reference id derived from a fragment label: ``foo`` -> ``fig-foo``."""
    slug = re.sub(r"[^\w-]+", "-", label).strip("-")
    if slug.startswith(f"{kind}-"):
        return slug
    return f"{kind}-{slug}"


class CrossRefIndex:
    """Numbered figure and table anchors, in the order they were emitted."""

    def __init__(self) -> None:
        self._refs: dict[str, CrossRef] = {}
        self._counters = {kind: 0 for kind in KIND_NAMES}

    def register(self, kind: str, label: str) -> CrossRef:
        anchor = anchor_for(kind, label)
        existing = self._refs.get(anchor)
        if existing is not None:
            return existing
        self._counters[kind] += 1
        ref = CrossRef(kind=kind, anchor=anchor, number=self._counters[kind])
        self._refs[anchor] = ref
        return ref

    def get(self, anchor: str) -> CrossRef | None:
        return self._refs.get(anchor)

    def __contains__(self, anchor: object) -> bool:
        return anchor in self._refs

    def __iter__(self) -> Iterator[CrossRef]:
        return iter(self._refs.values())

    def __len__(self) -> int:
        return len(self._refs)

    def resolve(self, text: str, diagnostics: list[ReprodocError]) -> str:
        """Replace ``@fig-x``/``@tbl-x`` tokens with links to their elements.

        Unknown tokens stay as literal text and are reported once each.
        """
        reported: set[str] = set()

        def replace(match: re.Match[str]) -> str:
            anchor = match.group(1)
            ref = self._refs.get(anchor)
            if ref is None:
                if anchor not in reported:
                    reported.add(anchor)
                    diagnostics.append(UnresolvedReference(match.group(0)))
                    logger.warning("Unresolved reference %s", match.group(0))
                return match.group(0)
            return f"[{ref.text}](#{ref.anchor})"

        return map_prose(text, lambda chunk: _REF_RE.sub(replace, chunk))


def map_prose(text: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to text outside fenced code blocks and code spans."""
    out: list[str] = []
    cursor = 0
    for fence in _FENCE_RE.finditer(text):
        out.append(_map_spans(text[cursor:fence.start()], fn))
        out.append(fence.group(0))
        cursor = fence.end()
    out.append(_map_spans(text[cursor:], fn))
    return "".join(out)


def _map_spans(text: str, fn: Callable[[str], str]) -> str:
    out: list[str] = []
    cursor = 0
    for span in _CODE_SPAN_RE.finditer(text):
        out.append(fn(text[cursor:span.start()]))
        out.append(span.group(0))
        cursor = span.end()
    out.append(fn(text[cursor:]))
    return "".join(out)
