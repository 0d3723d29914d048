"""Core intermediate representation (IR) for parsed documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, Mapping, Protocol

ResultHandling = Literal["asis", "literal", "hidden"]
FragmentKind = Literal["block", "inline"]

RESULT_HANDLING: tuple[str, ...] = ("asis", "literal", "hidden")


@dataclass(frozen=True, slots=True)
class OutputSpec:
    name: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Metadata:
    """Frontmatter of a document. Read-only once parsed."""

    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self.values

    @property
    def title(self) -> str:
        return str(self.values.get("title") or "")

    @property
    def authors(self) -> list[str]:
        value = self.values.get("author", self.values.get("authors"))
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(v.get("name", v)) if isinstance(v, Mapping) else str(v) for v in value]
        return [str(value)]

    @property
    def date(self) -> str | None:
        value = self.values.get("date")
        return str(value) if value not in (None, "") else None

    @property
    def output_formats(self) -> list[OutputSpec]:
        """Requested target formats in declaration order."""
        value = self.values.get("output", self.values.get("format"))
        if value is None:
            return []
        if isinstance(value, str):
            return [OutputSpec(value)]
        if isinstance(value, (list, tuple)):
            specs = []
            for item in value:
                if isinstance(item, Mapping):
                    specs.extend(_specs_from_mapping(item))
                else:
                    specs.append(OutputSpec(str(item)))
            return specs
        if isinstance(value, Mapping):
            return _specs_from_mapping(value)
        return [OutputSpec(str(value))]

    @property
    def bibliography(self) -> list[str]:
        value = self.values.get("bibliography")
        if not value:
            return []
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return [str(value)]

    @property
    def link_citations(self) -> bool:
        return bool(self.values.get("link-citations", self.values.get("linkCitations", False)))

    @property
    def citation_style(self) -> str | None:
        value = self.values.get("csl-style", self.values.get("citationStyle"))
        return str(value) if value else None


def _specs_from_mapping(value: Mapping[str, Any]) -> list[OutputSpec]:
    specs = []
    for name, options in value.items():
        if not isinstance(options, Mapping):
            options = {}
        specs.append(OutputSpec(str(name), MappingProxyType(dict(options))))
    return specs


@dataclass(frozen=True, slots=True)
class FragmentOptions:
    display: bool = True
    width: float | None = None
    height: float | None = None
    suppress_warnings: bool = False
    suppress_messages: bool = False
    cache: bool = False
    result_handling: ResultHandling = "literal"
    evaluate: bool = True
    error: bool = False
    label: str | None = None
    caption: str | None = None
    extra: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class Fragment:
    code: str
    options: FragmentOptions = field(default_factory=FragmentOptions)
    kind: FragmentKind = "block"
    engine: str = "python"
    line: int = 1
    # `#|` option lines removed from the top of the code
    code_offset: int = 0

    @property
    def label(self) -> str | None:
        return self.options.label


@dataclass(frozen=True, slots=True)
class NarrativeText:
    """Prose with inline fragments kept at their original positions."""

    parts: tuple[str | Fragment, ...] = ()

    @property
    def fragments(self) -> list[Fragment]:
        return [p for p in self.parts if isinstance(p, Fragment)]

    @property
    def text(self) -> str:
        return "".join(p for p in self.parts if isinstance(p, str))


Block = NarrativeText | Fragment


@dataclass(slots=True)
class Document:
    metadata: Metadata = field(default_factory=Metadata)
    blocks: list[Block] = field(default_factory=list)
    source_path: Path | None = None

    def fragments(self) -> list[Fragment]:
        """All fragments, block and inline, in source order."""
        found: list[Fragment] = []
        for block in self.blocks:
            if isinstance(block, Fragment):
                found.append(block)
            else:
                found.extend(block.fragments)
        return found


class Parser(Protocol):
    def parse(self, input_path: Path) -> Document:  # pragma: no cover - structural protocol
        """Parse an input document into Document IR."""
