"""Frontmatter splitting and a small YAML-subset reader (no pyyaml dependency).

Supported: ``key: value`` maps nested by indentation, block lists
(``- item``), flow lists (``[a, b]``) and flow maps (``{a: 1}``), quoted
strings, booleans, null, numbers and ``|``/``>`` block scalars.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from reprodoc.errors import MalformedMetadata

_KEY_RE = re.compile(r"^([^\s:#'\"][^:]*?|\"[^\"]*\"|'[^']*')\s*:(?:\s+(.*))?$")
_INT_RE = re.compile(r"^[-+]?\d+$")
_FLOAT_RE = re.compile(r"^[-+]?(\d+\.\d*|\.\d+|\d+(\.\d*)?[eE][-+]?\d+)$")
_CLOSERS = ("---", "...")


@dataclass(slots=True)
class _Line:
    number: int
    indent: int
    content: str


def split_frontmatter(text: str) -> tuple[str | None, str, int]:
    """Split leading frontmatter from body text.

    Returns ``(frontmatter, body, body_line)`` where ``body_line`` is the
    1-based source line the body starts on. ``frontmatter`` is None when the
    document has no metadata region.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != "---":
        return None, text, 1

    for idx in range(1, len(lines)):
        if lines[idx].rstrip() in _CLOSERS:
            frontmatter = "".join(lines[1:idx])
            body = "".join(lines[idx + 1:])
            return frontmatter, body, idx + 2

    raise MalformedMetadata("unterminated metadata region (missing closing '---')", line=1)


def parse_frontmatter(raw: str, first_line: int = 2) -> dict[str, Any]:
    """Parse a metadata region into a plain dict."""
    if not raw or not raw.strip():
        return {}

    lines: list[_Line] = []
    for offset, line in enumerate(raw.splitlines()):
        number = first_line + offset
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        leading = line[: len(line) - len(line.lstrip())]
        if "\t" in leading:
            raise MalformedMetadata("tabs are not allowed for indentation", line=number)
        lines.append(_Line(number, len(leading), line.rstrip()[len(leading):]))

    if lines[0].indent != 0:
        raise MalformedMetadata("unexpected indentation", line=lines[0].number)

    reader = _Reader(raw.splitlines(), lines, first_line)
    value, pos = reader.block(0, 0)
    if pos < len(lines):
        raise MalformedMetadata("unexpected content", line=lines[pos].number)
    if not isinstance(value, dict):
        raise MalformedMetadata("metadata must be a key-value mapping", line=lines[0].number)
    return value


class _Reader:
    def __init__(self, source: list[str], lines: list[_Line], first_line: int) -> None:
        self.source = source
        self.lines = lines
        self.first_line = first_line

    def block(self, pos: int, indent: int) -> tuple[Any, int]:
        if _is_item(self.lines[pos].content):
            return self.sequence(pos, indent)
        return self.mapping(pos, indent)

    def mapping(self, pos: int, indent: int) -> tuple[dict[str, Any], int]:
        result: dict[str, Any] = {}
        while pos < len(self.lines):
            line = self.lines[pos]
            if line.indent < indent:
                break
            if line.indent > indent or _is_item(line.content):
                raise MalformedMetadata("unexpected indentation", line=line.number)

            m = _KEY_RE.match(line.content)
            if not m:
                raise MalformedMetadata(f"expected 'key: value', got {line.content!r}", line=line.number)
            key = _unquote(m.group(1).strip(), line.number)
            rest = (m.group(2) or "").strip()
            pos += 1

            if rest in ("|", ">", "|-", ">-"):
                result[key], pos = self.block_scalar(pos, indent, folded=rest.startswith(">"))
            elif rest and not rest.startswith("#"):
                result[key] = parse_scalar(rest, line.number)
            elif pos < len(self.lines) and self.lines[pos].indent > indent:
                result[key], pos = self.block(pos, self.lines[pos].indent)
            elif pos < len(self.lines) and self.lines[pos].indent == indent and _is_item(self.lines[pos].content):
                result[key], pos = self.sequence(pos, indent)
            else:
                result[key] = None
        return result, pos

    def sequence(self, pos: int, indent: int) -> tuple[list[Any], int]:
        items: list[Any] = []
        while pos < len(self.lines):
            line = self.lines[pos]
            if line.indent != indent or not _is_item(line.content):
                if line.indent > indent:
                    raise MalformedMetadata("unexpected indentation", line=line.number)
                break
            item = line.content[1:].strip()
            if not item:
                pos += 1
                if pos < len(self.lines) and self.lines[pos].indent > indent:
                    value, pos = self.block(pos, self.lines[pos].indent)
                    items.append(value)
                else:
                    items.append(None)
                continue
            if _KEY_RE.match(item) and not item.startswith(("[", "{")):
                # A mapping that starts on the item line.
                offset = indent + len(line.content) - len(item)
                self.lines[pos] = _Line(line.number, offset, item)
                value, pos = self.mapping(pos, offset)
                items.append(value)
                continue
            items.append(parse_scalar(item, line.number))
            pos += 1
        return items, pos

    def block_scalar(self, pos: int, indent: int, *, folded: bool) -> tuple[str, int]:
        start = self.lines[pos - 1].number
        end_pos = pos
        while end_pos < len(self.lines) and self.lines[end_pos].indent > indent:
            end_pos += 1
        if end_pos == pos:
            return "", pos
        last = self.lines[end_pos - 1].number
        raw = self.source[start - self.first_line + 1:last - self.first_line + 1]
        margin = min(len(r) - len(r.lstrip()) for r in raw if r.strip())
        body = [r[margin:].rstrip() for r in raw]
        if folded:
            return " ".join(part for part in body if part), end_pos
        return "\n".join(body), end_pos


def _is_item(content: str) -> bool:
    return content == "-" or content.startswith("- ")


def parse_scalar(text: str, line: int | None = None) -> Any:
    """Convert a scalar token into a Python value."""
    text = text.strip()
    if not text:
        return None

    if text[0] in ('"', "'"):
        quote = text[0]
        end = text.find(quote, 1)
        while quote == '"' and end != -1 and text[end - 1] == "\\":
            end = text.find(quote, end + 1)
        if end == -1:
            raise MalformedMetadata(f"unterminated string {text!r}", line=line)
        tail = text[end + 1:].strip()
        if tail and not tail.startswith("#"):
            raise MalformedMetadata(f"unexpected text after string: {tail!r}", line=line)
        return _unquote(text[: end + 1], line)

    if text[0] == "[":
        if not text.endswith("]"):
            raise MalformedMetadata(f"unterminated list {text!r}", line=line)
        return [parse_scalar(part, line) for part in _split_flow(text[1:-1], line)]

    if text[0] == "{":
        if not text.endswith("}"):
            raise MalformedMetadata(f"unterminated mapping {text!r}", line=line)
        result: dict[str, Any] = {}
        for part in _split_flow(text[1:-1], line):
            key, sep, value = part.partition(":")
            if not sep:
                raise MalformedMetadata(f"expected 'key: value' in {text!r}", line=line)
            result[_unquote(key.strip(), line)] = parse_scalar(value, line)
        return result

    # Trailing comment.
    text = re.sub(r"\s+#.*$", "", text)

    lowered = text.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    if lowered in ("null", "~"):
        return None
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    return text


def _split_flow(text: str, line: int | None) -> list[str]:
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    current: list[str] = []
    for ch in text:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ('"', "'"):
            quote = ch
        elif ch in "[{":
            depth += 1
        elif ch in "]}":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    if quote or depth:
        raise MalformedMetadata(f"unbalanced flow collection {text!r}", line=line)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def _unquote(text: str, line: int | None) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ('"', "'"):
        inner = text[1:-1]
        if text[0] == '"':
            inner = inner.replace('\\"', '"').replace("\\n", "\n").replace("\\\\", "\\")
        else:
            inner = inner.replace("''", "'")
        return inner
    if text[:1] in ('"', "'"):
        raise MalformedMetadata(f"unterminated string {text!r}", line=line)
    return text


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def dump_frontmatter(values: dict[str, Any] | Any) -> str:
    """Serialise metadata back into the subset understood by ``parse_frontmatter``."""
    lines: list[str] = []
    _dump_mapping(dict(values), 0, lines)
    return "\n".join(lines)


def _dump_mapping(values: dict[str, Any], indent: int, lines: list[str]) -> None:
    pad = " " * indent
    for key, value in values.items():
        if isinstance(value, dict) and value:
            lines.append(f"{pad}{key}:")
            _dump_mapping(dict(value), indent + 2, lines)
        elif isinstance(value, (list, tuple)) and value:
            lines.append(f"{pad}{key}:")
            for item in value:
                if isinstance(item, dict) and item:
                    sub: list[str] = []
                    _dump_mapping(dict(item), indent + 4, sub)
                    lines.append(f"{pad}  - {sub[0].lstrip()}")
                    lines.extend(sub[1:])
                else:
                    lines.append(f"{pad}  - {_dump_scalar(item)}")
        else:
            lines.append(f"{pad}{key}: {_dump_scalar(value)}")


def _dump_scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, dict):
        return "{}"
    if isinstance(value, (list, tuple)):
        return "[]"
    text = str(value)
    if text != _parse_scalar_safe(text) or text.strip() != text or any(c in text for c in ":#[]{},\"'\n"):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        return f'"{escaped}"'
    return text


def _parse_scalar_safe(text: str) -> Any:
    try:
        return parse_scalar(text)
    except MalformedMetadata:
        return None
