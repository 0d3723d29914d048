"""Fragment option parsing.

Options come from the fence header, ``{python label, display=FALSE}``, and
from ``#| key: value`` comment lines at the top of a fragment's code. Both
the long names (``display``, ``suppressWarnings``, ``resultHandling``...)
and the familiar knitr names (``echo``, ``warning``, ``results``...) are
recognised; anything else is preserved verbatim in ``extra``.
"""

from __future__ import annotations

import re
from typing import Any

from .base import RESULT_HANDLING, FragmentOptions

# knitr / Quarto spellings mapped onto FragmentOptions fields.
_ALIASES: dict[str, str] = {
    "display": "display",
    "echo": "display",
    "size.width": "width",
    "fig.width": "width",
    "fig-width": "width",
    "width": "width",
    "size.height": "height",
    "fig.height": "height",
    "fig-height": "height",
    "height": "height",
    "suppresswarnings": "suppress_warnings",
    "suppress_warnings": "suppress_warnings",
    "suppressmessages": "suppress_messages",
    "suppress_messages": "suppress_messages",
    "cache": "cache",
    "resulthandling": "result_handling",
    "result_handling": "result_handling",
    "results": "result_handling",
    "evaluate": "evaluate",
    "eval": "evaluate",
    "error": "error",
    "label": "label",
    "caption": "caption",
    "fig.cap": "caption",
    "fig-cap": "caption",
    "tbl.cap": "caption",
    "tbl-cap": "caption",
}

# Inverted booleans: warning=FALSE means suppressWarnings=TRUE.
_NEGATED: dict[str, str] = {
    "warning": "suppress_warnings",
    "message": "suppress_messages",
}

_RESULT_ALIASES = {
    "asis": "asis",
    "literal": "literal",
    "markup": "literal",
    "hold": "literal",
    "hidden": "hidden",
    "hide": "hidden",
    "false": "hidden",
}

_HEADER_RE = re.compile(r"^\{\s*([A-Za-z][\w.+-]*)\s*(.*?)\s*\}$", re.DOTALL)
_PIPE_OPTION_RE = re.compile(r"^#\|\s*([\w.-]+)\s*:\s*(.*)$")


def parse_header(header: str) -> tuple[str, str]:
    """Split ``{python label, a=1}`` into ``("python", "label, a=1")``."""
    m = _HEADER_RE.match(header.strip())
    if not m:
        raise ValueError(f"Not a fragment header: {header!r}")
    return m.group(1).lower(), m.group(2).lstrip(", ").strip()


def parse_options(options: str, code: str = "") -> tuple[FragmentOptions, str]:
    """Build FragmentOptions from a header options string and the fragment code.

    Returns the options and the code with leading ``#|`` lines removed.
    """
    raw: dict[str, Any] = {}
    for index, token in enumerate(_split_options(options)):
        key, sep, value = token.partition("=")
        if not sep:
            if index == 0:
                raw["label"] = _unquote(token.strip())
                continue
            raw[token.strip()] = True
            continue
        raw[key.strip()] = _coerce(value.strip())

    code_lines = code.splitlines(keepends=True)
    consumed = 0
    for line in code_lines:
        m = _PIPE_OPTION_RE.match(line.strip())
        if not m:
            break
        raw[m.group(1)] = _coerce(m.group(2).strip())
        consumed += 1
    body = "".join(code_lines[consumed:])

    return build_options(raw), body


def build_options(raw: dict[str, Any]) -> FragmentOptions:
    fields: dict[str, Any] = {}
    extra: list[tuple[str, str]] = []

    for key, value in raw.items():
        lowered = key.lower()
        if lowered in _NEGATED:
            fields[_NEGATED[lowered]] = not _as_bool(value)
            continue
        target = _ALIASES.get(lowered)
        if target is None:
            extra.append((key, str(value)))
            continue
        if target in ("display", "suppress_warnings", "suppress_messages", "cache", "evaluate", "error"):
            fields[target] = _as_bool(value)
        elif target in ("width", "height"):
            fields[target] = _as_float(value, key)
        elif target == "result_handling":
            fields[target] = _as_result_handling(value)
        else:
            fields[target] = None if value is None else str(value)

    return FragmentOptions(**fields, extra=tuple(extra))


def _split_options(text: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    quote: str | None = None
    depth = 0
    for ch in text:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ('"', "'"):
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def _coerce(value: str) -> Any:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    lowered = value.lower()
    if lowered in ("true", "t", "yes"):
        return True
    if lowered in ("false", "f", "no"):
        return False
    if lowered in ("null", "none"):
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("true", "t", "yes", "1")
    return bool(value)


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Option {key!r} expects a number, got {value!r}") from exc


def _as_result_handling(value: Any) -> str:
    if value is False:
        return "hidden"
    normalized = _RESULT_ALIASES.get(str(value).lower())
    if normalized not in RESULT_HANDLING:
        raise ValueError(f"Unknown result handling {value!r} (expected asis, literal or hidden)")
    return normalized
