"""Values that know how to present themselves as narrative Markdown."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable


@runtime_checkable
class Renderable(Protocol):
    """Anything with ``to_narrative()`` is embedded as Markdown, not as a repr.

    An optional ``kind`` attribute (``"fig"`` or ``"tbl"``) makes labeled
    fragments returning the value cross-referenceable.
    """

    def to_narrative(self) -> str:  # pragma: no cover - structural protocol
        ...


@dataclass(slots=True)
class AsIs:
    text: str
    kind: str | None = None

    def to_narrative(self) -> str:
        return self.text


@dataclass(slots=True)
class Table:
    headers: list[str] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)
    caption: str = ""
    digits: int | None = None
    kind: str = "tbl"

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], **kwargs: Any) -> "Table":
        records = list(records)
        headers: list[str] = []
        for record in records:
            for key in record:
                if key not in headers:
                    headers.append(key)
        rows = [[record.get(h, "") for h in headers] for record in records]
        return cls(headers=headers, rows=rows, **kwargs)

    def to_narrative(self) -> str:
        if not self.headers and not self.rows:
            return ""
        width = max(len(self.headers), max((len(r) for r in self.rows), default=0))
        headers = [str(h) for h in self.headers] + [""] * (width - len(self.headers))

        lines = [
            "| " + " | ".join(_cell(h) for h in headers) + " |",
            "|" + "|".join(_align(self.rows, idx) for idx in range(width)) + "|",
        ]
        for row in self.rows:
            cells = [self._format(v) for v in row] + [""] * (width - len(row))
            lines.append("| " + " | ".join(_cell(c) for c in cells) + " |")
        return "\n".join(lines)

    def _format(self, value: Any) -> str:
        if self.digits is not None and isinstance(value, float):
            return f"{value:.{self.digits}f}"
        return str(value)


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def _align(rows: list[list[Any]], idx: int) -> str:
    values = [r[idx] for r in rows if idx < len(r)]
    numeric = values and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values)
    return "---:" if numeric else "---"


@dataclass(slots=True)
class Figure:
    path: Path | str
    caption: str = ""
    kind: str = "fig"

    def to_narrative(self) -> str:
        return f"![{self.caption}]({Path(self.path).as_posix()})"


def narrative_of(value: Any) -> str | None:
    """Narrative Markdown for a value, or None when it only has a repr.

    Besides ``Renderable`` this honours the ``_repr_markdown_`` and
    ``_repr_html_`` display hooks that data libraries already implement.
    """
    if isinstance(value, Renderable) and not isinstance(value, type):
        return value.to_narrative()
    for hook in ("_repr_markdown_", "_repr_html_"):
        method = getattr(value, hook, None)
        if callable(method) and not isinstance(value, type):
            rendered = method()
            if isinstance(rendered, tuple):
                rendered = rendered[0]
            if rendered is not None:
                return str(rendered)
    return None


def kind_of(value: Any) -> str | None:
    """Cross-reference kind of a value: ``fig``, ``tbl`` or None."""
    kind = getattr(value, "kind", None)
    if isinstance(kind, str) and kind in ("fig", "tbl"):
        return kind
    html_hook = getattr(value, "_repr_html_", None)
    if callable(html_hook) and not isinstance(value, type):
        rendered = html_hook()
        if isinstance(rendered, str) and "<table" in rendered:
            return "tbl"
    return None
