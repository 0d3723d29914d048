"""Tests for stitching results into narrative Markdown and cross references."""

from __future__ import annotations

from reprodoc.engine.context import EvaluationContext
from reprodoc.errors import UnresolvedReference
from reprodoc.parser.source_parser import SourceParser
from reprodoc.stitch.crossref import CrossRefIndex, anchor_for, map_prose
from reprodoc.stitch.stitcher import StitchedDocument, Stitcher


def _stitch(text: str) -> StitchedDocument:
    document = SourceParser().parse_text(text)
    context = EvaluationContext()
    results = [context.evaluate(f) for f in document.fragments()]
    return Stitcher().stitch(document, results)


# ---------------------------------------------------------------------------
# Result handling
# ---------------------------------------------------------------------------

def test_literal_block_shows_code_and_output() -> None:
    out = _stitch("Intro.\n\n```{python}\nprint('hello')\n```\n\nOutro.\n").text
    assert out == "Intro.\n\n```python\nprint('hello')\n```\n\n```\nhello\n```\n\nOutro.\n"


def test_value_repr_in_literal_mode() -> None:
    out = _stitch("```{python, display=FALSE}\n'text'\n```\n").text
    assert out == "```\n'text'\n```\n"


def test_asis_block_embeds_output_directly() -> None:
    out = _stitch("```{python, display=FALSE, resultHandling='asis'}\nprint('**bold**')\n```\n").text
    assert out == "**bold**\n"


def test_hidden_block_keeps_side_effects() -> None:
    text = "```{python, display=FALSE, results='hide'}\nanswer = 42\nprint('invisible')\nanswer\n```\n\nIt is `{python} answer`.\n"
    out = _stitch(text).text
    assert "invisible" not in out
    assert "```" not in out
    assert out.strip() == "It is 42."


def test_inline_asis_and_hidden() -> None:
    text = (
        "```{python, display=FALSE}\nfrom reprodoc.engine import AsIs\n```\n\n"
        "A `{python, resultHandling='asis'} AsIs('*b*')` and `{python, results='hide'} 1`.\n"
    )
    assert _stitch(text).text.strip() == "A *b* and ."


def test_warning_annotation() -> None:
    out = _stitch("```{python, display=FALSE}\nimport warnings\nwarnings.warn('check me')\n```\n").text
    assert "> **Warning:** UserWarning: check me" in out


def test_continued_error_is_visible() -> None:
    out = _stitch("```{python, error=TRUE}\nraise ValueError('bad input')\n```\n").text
    assert "> **Error:** ValueError: bad input" in out


def test_unevaluated_fragment_shows_code_only() -> None:
    out = _stitch("```{python, evaluate=FALSE}\nprint('never')\n```\n").text
    assert out == "```python\nprint('never')\n```\n"


# ---------------------------------------------------------------------------
# Cross references
# ---------------------------------------------------------------------------

TABLE_DOC = """\
```{python scores, display=FALSE, tbl.cap="Mean scores"}
from reprodoc.engine import Table
Table(headers=["Group", "Mean"], rows=[["A", 1.5]])
```

See @tbl-scores and @fig-missing.
"""


def test_labeled_table_registers_anchor() -> None:
    stitched = _stitch(TABLE_DOC)
    assert "tbl-scores" in stitched.crossrefs
    assert '<div id="tbl-scores" class="table" markdown="1">' in stitched.text
    assert "Table 1: Mean scores" in stitched.text
    assert "| Group | Mean |" in stitched.text


def test_resolve_references() -> None:
    stitched = _stitch(TABLE_DOC)
    diagnostics: list = []
    text = stitched.crossrefs.resolve(stitched.text, diagnostics)

    assert "See [Table 1](#tbl-scores) and @fig-missing." in text
    assert len(diagnostics) == 1
    assert isinstance(diagnostics[0], UnresolvedReference)
    assert diagnostics[0].token == "@fig-missing"


def test_anchor_derivation() -> None:
    assert anchor_for("fig", "scatter") == "fig-scatter"
    assert anchor_for("fig", "fig-scatter") == "fig-scatter"
    assert anchor_for("tbl", "table 2.b") == "tbl-table-2-b"


def test_numbering_is_per_kind() -> None:
    index = CrossRefIndex()
    assert index.register("fig", "a").number == 1
    assert index.register("tbl", "b").number == 1
    assert index.register("fig", "c").number == 2
    assert index.register("fig", "a").number == 1
    assert len(index) == 3


def test_code_is_never_rewritten() -> None:
    text = "x @a `@a`\n\n```\n@a\n```\n@a"
    assert map_prose(text, lambda chunk: chunk.replace("@a", "Z")) == "x Z `@a`\n\n```\n@a\n```\nZ"


# ---------------------------------------------------------------------------
# Inline diagnostics
# ---------------------------------------------------------------------------

WARN = "__import__('warnings').warn('careful') or 1"


def test_inline_warning_follows_its_paragraph() -> None:
    out = _stitch(f"Value: `{{python}} {WARN}`.\n").text
    assert out == "Value: 1.\n\n> **Warning:** UserWarning: careful\n"


def test_inline_warning_placed_before_next_paragraph() -> None:
    out = _stitch(f"A `{{python}} {WARN}` b.\n\nNext.\n").text
    assert out == "A 1 b.\n\n> **Warning:** UserWarning: careful\n\nNext.\n"


def test_inline_warning_suppressed() -> None:
    out = _stitch(f"Value: `{{python, suppressWarnings=TRUE}} {WARN}`.\n").text
    assert out == "Value: 1.\n"
