"""Tests for bibliography loading and citation rewriting."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from reprodoc.errors import UnknownCitationKey
from reprodoc.stitch.citations import Bibliography, CitationProcessor, parse_bibtex

BIBTEX = r"""
@article{nuijten2016,
  author = {Nuijten, Mich{\`e}le B. and Hartgerink, Chris H. J. and van Assen, Marcel A. L. M.},
  title = {The prevalence of statistical reporting errors in psychology (1985--2013)},
  journal = {Behavior Research Methods},
  year = {2016},
  volume = {48},
  number = {4},
  pages = {1205--1226},
  doi = {10.3758/s13428-015-0664-2}
}

@manual{epskamp2016,
  author = "Epskamp, Sacha and Nuijten, Michele B.",
  title = {statcheck: Extract statistics from articles},
  year = 2016
}
"""


@pytest.fixture()
def bibliography() -> Bibliography:
    return Bibliography(parse_bibtex(BIBTEX))


# ---------------------------------------------------------------------------
# Bibliography
# ---------------------------------------------------------------------------

def test_parse_bibtex(bibliography: Bibliography) -> None:
    assert len(bibliography) == 2
    entry = bibliography.entries["nuijten2016"]
    assert entry.family_names == ["Nuijten", "Hartgerink", "van Assen"]
    assert entry.year == "2016"
    assert entry.fields["title"].startswith("The prevalence")


def test_resolve_styles(bibliography: Bibliography) -> None:
    assert bibliography.resolve("nuijten2016") == "Nuijten et al., 2016"
    assert bibliography.resolve("epskamp2016") == "Epskamp & Nuijten, 2016"
    assert bibliography.resolve("epskamp2016", "numeric") == "2"


def test_resolve_unknown_key(bibliography: Bibliography) -> None:
    with pytest.raises(UnknownCitationKey) as excinfo:
        bibliography.resolve("missing2020")
    assert excinfo.value.key == "missing2020"


def test_load_bib_and_csl_json(tmp_path: Path) -> None:
    bib = tmp_path / "refs.bib"
    bib.write_text(BIBTEX, encoding="utf-8")
    csl = tmp_path / "more.json"
    csl.write_text(
        json.dumps(
            [
                {
                    "id": "xie2018",
                    "type": "book",
                    "author": [{"family": "Xie", "given": "Yihui"}, {"family": "Allaire", "given": "J. J."}],
                    "issued": {"date-parts": [[2018]]},
                    "title": "R Markdown: The Definitive Guide",
                    "publisher": "Chapman and Hall/CRC",
                }
            ]
        ),
        encoding="utf-8",
    )

    loaded = Bibliography.load([bib, csl])
    assert len(loaded) == 3
    assert loaded.resolve("xie2018") == "Xie & Allaire, 2018"


# ---------------------------------------------------------------------------
# Rewriting
# ---------------------------------------------------------------------------

def test_bracketed_and_narrative_citations(bibliography: Bibliography) -> None:
    processor = CitationProcessor(bibliography)
    diagnostics: list = []
    text = processor.process(
        "Errors are common [@nuijten2016; @epskamp2016, p. 3]. @epskamp2016 wrote a tool.", diagnostics
    )
    assert text == (
        "Errors are common (Nuijten et al., 2016; Epskamp & Nuijten, 2016, p. 3). "
        "Epskamp & Nuijten (2016) wrote a tool."
    )
    assert diagnostics == []
    assert processor.cited == ["nuijten2016", "epskamp2016"]


def test_numeric_style(bibliography: Bibliography) -> None:
    processor = CitationProcessor(bibliography, style="numeric")
    assert processor.process("See [@epskamp2016; @nuijten2016].", []) == "See [2, 1]."


def test_unknown_key_placeholder(bibliography: Bibliography) -> None:
    processor = CitationProcessor(bibliography)
    diagnostics: list = []
    text = processor.process("As shown by @nuijten2017, and again [@nuijten2017].", diagnostics)

    assert "**[UnknownCitationKey: nuijten2017]**" in text
    assert text.count("UnknownCitationKey") == 2
    assert len(diagnostics) == 1
    assert isinstance(diagnostics[0], UnknownCitationKey)


def test_emails_code_and_crossrefs_untouched(bibliography: Bibliography) -> None:
    processor = CitationProcessor(bibliography)
    diagnostics: list = []
    text = "Mail a@b.org, run `@nuijten2016`, see @fig-plot."
    assert processor.process(text, diagnostics) == text
    assert diagnostics == []


def test_linked_citations_and_reference_list(bibliography: Bibliography) -> None:
    processor = CitationProcessor(bibliography, link=True)
    text = processor.process("[@nuijten2016]", [])
    assert text == "([Nuijten et al., 2016](#ref-nuijten2016))"

    references = processor.references_section()
    assert references.startswith("## References\n")
    assert '<span id="ref-nuijten2016"></span>' in references
    assert "*Behavior Research Methods*, 48(4), 1205--1226." in references
    assert "https://doi.org/10.3758/s13428-015-0664-2" in references
    assert "epskamp2016" not in references


def test_unknown_style_rejected(bibliography: Bibliography) -> None:
    with pytest.raises(ValueError):
        CitationProcessor(bibliography, style="chicago")
