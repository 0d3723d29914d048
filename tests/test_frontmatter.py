"""Tests for frontmatter splitting and the YAML-subset reader.

Covers:
- Splitting the metadata region from the body (and body line numbers)
- Scalars, flow lists, nested maps, block lists, block scalars
- Malformed regions (unterminated, bad indentation, bad quoting)
- Serialising metadata back to frontmatter
"""

from __future__ import annotations

import pytest

from reprodoc.errors import MalformedMetadata
from reprodoc.parser.base import Metadata
from reprodoc.parser.frontmatter import dump_frontmatter, parse_frontmatter, split_frontmatter


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------

def test_split_without_frontmatter() -> None:
    frontmatter, body, line = split_frontmatter("# Heading\n\nText.\n")
    assert frontmatter is None
    assert body == "# Heading\n\nText.\n"
    assert line == 1


def test_split_and_parse_scalars() -> None:
    text = """\
---
title: "Reproducible Manuscripts"
author: [Alice, Bob]
date: 2025-06-01
linkCitations: true
---
Body text.
"""
    frontmatter, body, line = split_frontmatter(text)
    assert body == "Body text.\n"
    assert line == 7

    meta = parse_frontmatter(frontmatter)
    assert meta == {
        "title": "Reproducible Manuscripts",
        "author": ["Alice", "Bob"],
        "date": "2025-06-01",
        "linkCitations": True,
    }


def test_dots_close_the_region() -> None:
    frontmatter, body, _ = split_frontmatter("---\ntitle: X\n...\nBody\n")
    assert parse_frontmatter(frontmatter) == {"title": "X"}
    assert body == "Body\n"


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------

def test_nested_output_formats() -> None:
    raw = """\
output:
  html_document:
    toc: true
    dark_mode: no
  pdf_document: default
bibliography: refs.bib
"""
    meta = parse_frontmatter(raw)
    assert meta == {
        "output": {"html_document": {"toc": True, "dark_mode": False}, "pdf_document": "default"},
        "bibliography": "refs.bib",
    }

    specs = Metadata(meta).output_formats
    assert [s.name for s in specs] == ["html_document", "pdf_document"]
    assert specs[0].options["toc"] is True
    assert dict(specs[1].options) == {}


def test_block_list_with_mapping_items() -> None:
    raw = """\
author:
  - Alice
  - name: Bob
    affiliation: Tilburg University
"""
    meta = parse_frontmatter(raw)
    assert meta["author"] == ["Alice", {"name": "Bob", "affiliation": "Tilburg University"}]
    assert Metadata(meta).authors == ["Alice", "Bob"]


def test_block_scalar_keeps_lines() -> None:
    raw = "abstract: |\n  Line one\n  Line two\ntitle: X\n"
    meta = parse_frontmatter(raw)
    assert meta["abstract"] == "Line one\nLine two"
    assert meta["title"] == "X"


def test_numbers_and_flow_maps() -> None:
    meta = parse_frontmatter("seed: 42\nratio: 0.5\nsize: {width: 7, height: 5}\nempty:\n")
    assert meta == {"seed": 42, "ratio": 0.5, "size": {"width": 7, "height": 5}, "empty": None}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

def test_unterminated_region() -> None:
    with pytest.raises(MalformedMetadata) as excinfo:
        split_frontmatter("---\ntitle: Never closed\n\nBody\n")
    assert excinfo.value.line == 1


def test_unexpected_indentation_names_line() -> None:
    with pytest.raises(MalformedMetadata) as excinfo:
        parse_frontmatter("title: x\n  nested: y\n")
    assert excinfo.value.line == 3


def test_line_without_key() -> None:
    with pytest.raises(MalformedMetadata):
        parse_frontmatter("just some words\n")


def test_unterminated_quote() -> None:
    with pytest.raises(MalformedMetadata):
        parse_frontmatter('title: "abc\n')


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def test_dump_is_read_back_unchanged() -> None:
    values = {
        "title": "Errors: a survey",
        "author": ["Alice", "Bob"],
        "date": "2025-06-01",
        "output": {"html_document": {"toc": True}},
        "seed": 3,
        "draft": False,
        "version": "42",
    }
    assert parse_frontmatter(dump_frontmatter(values)) == values
