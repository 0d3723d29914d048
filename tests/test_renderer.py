from pathlib import Path

import pytest

from reprodoc.errors import UnsupportedFormat
from reprodoc.parser.base import Metadata
from reprodoc.renderer import HTMLRenderer, MarkdownRenderer, PDFRenderer, canonical_format, get_renderer
from reprodoc.stitch.stitcher import StitchedDocument

BODY = """\
## Results

The answer is 4.

| Group | Mean |
|---|---:|
| A | 1.5 |
"""


def _document(text: str = BODY, resource_dir: Path | None = None) -> StitchedDocument:
    metadata = Metadata({"title": "Renderer Test", "author": ["Alice", "Bob"], "date": "2025-01-01"})
    return StitchedDocument(metadata=metadata, text=text, resource_dir=resource_dir)


def test_html_renderer_page() -> None:
    html = HTMLRenderer().render(_document())

    assert "<title>Renderer Test</title>" in html
    assert '<p class="authors">Alice, Bob</p>' in html
    assert '<p class="date">2025-01-01</p>' in html
    assert '<h2 id="results">Results</h2>' in html
    assert "<table>" in html
    assert 'class="light-mode"' in html
    assert '<nav class="toc">' not in html


def test_html_renderer_options() -> None:
    html = HTMLRenderer().render(_document(), {"toc": True, "dark_mode": True, "title": "Override"})

    assert 'class="dark-mode"' in html
    assert '<nav class="toc">' in html
    assert 'href="#results"' in html
    assert "<title>Override</title>" in html


def test_html_escapes_metadata() -> None:
    document = StitchedDocument(metadata=Metadata({"title": "A <b> & C"}), text="Body.\n")
    html = HTMLRenderer().render(document)
    assert "<title>A &lt;b&gt; &amp; C</title>" in html


def test_html_embeds_local_images(tmp_path: Path) -> None:
    (tmp_path / "plot.png").write_bytes(b"\x89PNG fake")
    document = _document("![Plot](plot.png)\n\n![Remote](https://example.org/x.png)\n", resource_dir=tmp_path)

    html = HTMLRenderer().render(document)
    assert 'src="data:image/png;base64,' in html
    assert 'src="https://example.org/x.png"' in html

    linked = HTMLRenderer().render(document, {"self_contained": False})
    assert 'src="plot.png"' in linked


def test_markdown_renderer() -> None:
    document = _document()
    assert MarkdownRenderer().render(document) == BODY

    with_yaml = MarkdownRenderer().render(document, {"preserve_yaml": True})
    assert with_yaml.startswith("---\ntitle: Renderer Test\n")
    assert with_yaml.endswith("---\n\n" + BODY)


def test_pdf_renderer() -> None:
    fitz = pytest.importorskip("fitz")

    data = PDFRenderer().render(_document())
    assert data.startswith(b"%PDF")

    with fitz.open(stream=data, filetype="pdf") as pdf:
        text = "".join(page.get_text() for page in pdf)
    assert "Renderer Test" in text
    assert "The answer is 4." in text


def test_format_aliases() -> None:
    assert canonical_format("html_document") == "html"
    assert canonical_format("PDF_Document") == "pdf"
    assert canonical_format("github_document") == "md"
    assert isinstance(get_renderer("md"), MarkdownRenderer)
    assert isinstance(get_renderer("pdf"), PDFRenderer)

    with pytest.raises(UnsupportedFormat):
        canonical_format("docx")
