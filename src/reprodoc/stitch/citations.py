"""Citation resolution against a BibTeX or CSL-JSON bibliography."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from reprodoc.errors import ReprodocError, UnknownCitationKey

from .crossref import map_prose

logger = logging.getLogger(__name__)

STYLES = ("author-year", "numeric")

_ENTRY_RE = re.compile(r"@(\w+)\s*\{\s*([^,\s]+)\s*,(.*?)\n\s*\}", re.DOTALL)
_FIELD_RE = re.compile(r"(\w+)\s*=\s*(\{(?:[^{}]|\{(?:[^{}]|\{[^{}]*\})*\})*\}|\"[^\"]*\"|\w+)", re.DOTALL)
_KEY = r"[A-Za-z0-9_](?:[\w:.#$%&+?<>~/-]*\w)?"
_BRACKET_RE = re.compile(r"\[([^\[\]]*?-?@" + _KEY + r"[^\[\]]*)\](?!\()")
_BARE_RE = re.compile(r"(?<![\w@/.:])@(" + _KEY + ")")
_CITE_ITEM_RE = re.compile(r"^\s*(-?)@(" + _KEY + r")\s*(?:,\s*(.+?))?\s*$")
_SKIP_PREFIXES = ("fig-", "tbl-")


@dataclass(slots=True)
class BibEntry:
    key: str
    entry_type: str = "article"
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def family_names(self) -> list[str]:
        raw = self.fields.get("author") or self.fields.get("editor") or ""
        names = []
        for person in re.split(r"\s+and\s+", raw):
            person = person.strip()
            if not person:
                continue
            if "," in person:
                names.append(person.split(",", 1)[0].strip())
            else:
                names.append(person.split()[-1])
        return names

    @property
    def year(self) -> str:
        return self.fields.get("year") or "n.d."

    def author_label(self) -> str:
        names = self.family_names
        if not names:
            return self.fields.get("title", self.key)
        if len(names) == 1:
            return names[0]
        if len(names) == 2:
            return f"{names[0]} & {names[1]}"
        return f"{names[0]} et al."

    def formatted(self) -> str:
        """Reference-list entry."""
        parts = [f"{self.fields.get('author', self.key)} ({self.year})."]
        if self.fields.get("title"):
            parts.append(f"{self.fields['title']}.")
        container = self.fields.get("journal") or self.fields.get("booktitle") or self.fields.get("publisher")
        if container:
            detail = f"*{container}*"
            if self.fields.get("volume"):
                detail += f", {self.fields['volume']}"
                if self.fields.get("number"):
                    detail += f"({self.fields['number']})"
            if self.fields.get("pages"):
                detail += f", {self.fields['pages']}"
            parts.append(detail + ".")
        if self.fields.get("doi"):
            parts.append(f"https://doi.org/{self.fields['doi']}")
        elif self.fields.get("url"):
            parts.append(self.fields["url"])
        return " ".join(parts)


class Bibliography:
    """Entries keyed by citation key, in file order."""

    def __init__(self, entries: Iterable[BibEntry] = ()) -> None:
        self.entries: dict[str, BibEntry] = {}
        for entry in entries:
            self.entries.setdefault(entry.key, entry)

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def load(cls, paths: Iterable[Path]) -> "Bibliography":
        entries: list[BibEntry] = []
        for path in paths:
            path = Path(path)
            text = path.read_text(encoding="utf-8", errors="ignore")
            if path.suffix.lower() == ".json":
                entries.extend(parse_csl_json(text))
            else:
                entries.extend(parse_bibtex(text))
            logger.debug("Loaded bibliography %s", path)
        return cls(entries)

    def resolve(self, key: str, style: str = "author-year") -> str:
        """Citation text for ``key``: ``"Nuijten et al., 2016"`` or ``"3"``."""
        entry = self.entries.get(key)
        if entry is None:
            raise UnknownCitationKey(key)
        if style == "numeric":
            return str(list(self.entries).index(key) + 1)
        return f"{entry.author_label()}, {entry.year}"


def parse_bibtex(text: str) -> list[BibEntry]:
    entries: list[BibEntry] = []
    for entry_match in _ENTRY_RE.finditer(text):
        entry_type = entry_match.group(1).lower()
        if entry_type in ("comment", "string", "preamble"):
            continue
        fields = {}
        for field_match in _FIELD_RE.finditer(entry_match.group(3)):
            fields[field_match.group(1).lower()] = _clean_bib_value(field_match.group(2))
        entries.append(BibEntry(key=entry_match.group(2).strip(), entry_type=entry_type, fields=fields))
    return entries


def _clean_bib_value(value: str) -> str:
    value = value.strip()
    if value[:1] in ("{", '"'):
        value = value[1:-1]
    value = value.replace("{", "").replace("}", "")
    return re.sub(r"\s+", " ", value).strip()


def parse_csl_json(text: str) -> list[BibEntry]:
    data = json.loads(text)
    if isinstance(data, dict):
        data = data.get("items", [data])
    entries: list[BibEntry] = []
    for item in data:
        authors = [
            f"{a.get('family', '')}, {a.get('given', '')}".strip(", ") if "family" in a else a.get("literal", "")
            for a in item.get("author", [])
        ]
        fields = {"author": " and ".join(a for a in authors if a)}
        parts = (item.get("issued") or {}).get("date-parts") or [[]]
        if parts and parts[0]:
            fields["year"] = str(parts[0][0])
        for csl_key, bib_key in (
            ("title", "title"),
            ("container-title", "journal"),
            ("volume", "volume"),
            ("issue", "number"),
            ("page", "pages"),
            ("DOI", "doi"),
            ("URL", "url"),
            ("publisher", "publisher"),
        ):
            if item.get(csl_key):
                fields[bib_key] = str(item[csl_key])
        entries.append(BibEntry(key=str(item["id"]), entry_type=str(item.get("type", "article")), fields=fields))
    return entries


class CitationProcessor:
    """Rewrite ``[@key]`` and ``@key`` tokens into formatted citations."""

    def __init__(self, bibliography: Bibliography, *, style: str = "author-year", link: bool = False) -> None:
        if style not in STYLES:
            raise ValueError(f"Unknown citation style {style!r} (expected one of {', '.join(STYLES)})")
        self.bibliography = bibliography
        self.style = style
        self.link = link
        self.cited: list[str] = []

    def process(self, text: str, diagnostics: list[ReprodocError]) -> str:
        reported: set[str] = set()

        def cite(key: str, narrative: bool = False, locator: str | None = None, suppress_author: bool = False) -> str:
            try:
                resolved = self.bibliography.resolve(key, self.style)
            except UnknownCitationKey as exc:
                if key not in reported:
                    reported.add(key)
                    diagnostics.append(exc)
                    logger.warning("Unknown citation key @%s", key)
                return placeholder(key)

            if key not in self.cited:
                self.cited.append(key)
            entry = self.bibliography.entries[key]
            if self.style == "numeric":
                body = resolved
                if locator:
                    body += f", {locator}"
                if narrative:
                    body = f"{entry.author_label()} [{self._link(key, body)}]"
                    return body
            elif narrative:
                body = f"{entry.author_label()} ({entry.year}{', ' + locator if locator else ''})"
            else:
                body = entry.year if suppress_author else resolved
                if locator:
                    body += f", {locator}"
            return self._link(key, body)

        def bracket(match: re.Match[str]) -> str:
            items = [_CITE_ITEM_RE.match(part) for part in match.group(1).split(";")]
            if not all(items) or any(m.group(2).startswith(_SKIP_PREFIXES) for m in items):
                return match.group(0)
            rendered = [cite(m.group(2), locator=m.group(3), suppress_author=bool(m.group(1))) for m in items]
            if self.style == "numeric":
                return "[" + ", ".join(rendered) + "]"
            return "(" + "; ".join(rendered) + ")"

        def bare(match: re.Match[str]) -> str:
            key = match.group(1)
            if key.startswith(_SKIP_PREFIXES):
                return match.group(0)
            return cite(key, narrative=True)

        def rewrite(chunk: str) -> str:
            return _BARE_RE.sub(bare, _BRACKET_RE.sub(bracket, chunk))

        return map_prose(text, rewrite)

    def _link(self, key: str, text: str) -> str:
        if not self.link:
            return text
        return f"[{text}](#ref-{key})"

    def references_section(self, title: str = "References") -> str:
        """Markdown reference list for every key cited so far."""
        if not self.cited:
            return ""
        keys = list(self.cited)
        if self.style == "numeric":
            keys.sort(key=lambda k: list(self.bibliography.entries).index(k))
        else:
            keys.sort(key=lambda k: (self.bibliography.entries[k].author_label().lower(), self.bibliography.entries[k].year))

        lines = [f"## {title}", ""]
        for key in keys:
            entry = self.bibliography.entries[key]
            prefix = f"[{self.bibliography.resolve(key, 'numeric')}] " if self.style == "numeric" else ""
            lines.append(f'<span id="ref-{key}"></span>{prefix}{entry.formatted()}')
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"


def placeholder(key: str) -> str:
    """Visible marker left in the output for a key missing from the bibliography."""
    return f"**[UnknownCitationKey: {key}]**"
