"""Render a finalized document into a self-contained HTML page."""

from __future__ import annotations

import base64
import logging
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import markdown
from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup

from reprodoc.stitch.stitcher import StitchedDocument

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ["tables", "fenced_code", "attr_list", "md_in_html", "sane_lists", "toc"]

_IMG_SRC_RE = re.compile(r'(<img\b[^>]*?\bsrc=")([^"]+)(")')


@dataclass(slots=True)
class RenderedBody:
    html: str
    toc: str


class HTMLRenderer:
    """Render the stitched Markdown into the page template."""

    name = "html"
    extension = ".html"

    def __init__(self, template_path: Path | None = None) -> None:
        if template_path is None:
            template_path = Path(__file__).resolve().parent.parent / "template" / "document.html"

        loader = FileSystemLoader(str(template_path.parent))
        self._env = Environment(loader=loader, autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._template_name = template_path.name

    def render(self, document: StitchedDocument, options: Mapping[str, Any] | None = None) -> str:
        options = options or {}
        metadata = document.metadata
        body = self.render_body(document, embed_images=bool(options.get("self_contained", True)))

        template = self._env.get_template(self._template_name)
        return template.render(
            page_title=options.get("title") or metadata.title or _fallback_title(document),
            authors=metadata.authors,
            date=metadata.date,
            toc_html=Markup(body.toc) if options.get("toc") else None,
            body_html=Markup(body.html),
            dark_mode=bool(options.get("dark_mode", False)),
        )

    def render_body(self, document: StitchedDocument, *, embed_images: bool = False) -> RenderedBody:
        converter = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
        html = converter.convert(document.text)
        if embed_images:
            html = _embed_images(html, _asset_root(document))
        return RenderedBody(html=html, toc=getattr(converter, "toc", ""))


def _fallback_title(document: StitchedDocument) -> str:
    if document.source_path is not None:
        return document.source_path.stem
    return "Untitled"


def _asset_root(document: StitchedDocument) -> Path:
    if document.resource_dir is not None:
        return document.resource_dir
    if document.source_path is not None:
        return document.source_path.parent
    return Path.cwd()


def _embed_images(html: str, asset_root: Path) -> str:
    def replace(match: re.Match[str]) -> str:
        src = match.group(2)
        if src.startswith(("data:", "http://", "https://", "//")):
            return match.group(0)
        path = Path(src) if Path(src).is_absolute() else asset_root / src
        data_uri = _maybe_embed_image(path)
        if data_uri is None:
            logger.warning("Image not found, keeping link: %s", src)
            return match.group(0)
        return f"{match.group(1)}{data_uri}{match.group(3)}"

    return _IMG_SRC_RE.sub(replace, html)


def _maybe_embed_image(path: Path) -> str | None:
    if not path.exists() or not path.is_file():
        return None
    mime, _ = mimetypes.guess_type(path.name)
    mime = mime or "application/octet-stream"
    data = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{data}"
