"""Single-pass compilation: parse, evaluate, stitch, render."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

from reprodoc.config.settings import Settings, get_settings
from reprodoc.engine.context import EvaluationContext, EvaluationResult
from reprodoc.errors import MalformedMetadata, ReprodocError
from reprodoc.parser.base import Document, Metadata
from reprodoc.parser.source_parser import SourceParser
from reprodoc.renderer import canonical_format, finalize, get_renderer
from reprodoc.stitch.citations import Bibliography, CitationProcessor
from reprodoc.stitch.stitcher import StitchedDocument, Stitcher

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CompileResult:
    document: Document
    results: list[EvaluationResult]
    stitched: StitchedDocument
    artifacts: dict[str, str | bytes] = field(default_factory=dict)
    outputs: dict[str, Path] = field(default_factory=dict)
    diagnostics: list[ReprodocError] = field(default_factory=list)
    bindings: dict[str, Any] = field(default_factory=dict)

    def text(self, fmt: str) -> str:
        artifact = self.artifacts[canonical_format(fmt)]
        return artifact if isinstance(artifact, str) else artifact.decode("latin-1")


class Compiler:
    """Compile one literate document per call.

    Every call builds its own EvaluationContext, so compilations never share
    bindings.
    """

    def __init__(self, settings: Settings | None = None, parser: SourceParser | None = None) -> None:
        self.settings = settings or get_settings()
        self.parser = parser or SourceParser()

    def compile(
        self,
        input_path: Path,
        *,
        output_dir: Path | None = None,
        formats: Iterable[str] | None = None,
        bibliography: Iterable[Path] | None = None,
        citation_style: str | None = None,
    ) -> CompileResult:
        input_path = Path(input_path)
        document = self.parser.parse(input_path)
        return self.run(
            document,
            base_dir=input_path.parent,
            stem=input_path.stem,
            output_dir=output_dir,
            formats=formats,
            bibliography=bibliography,
            citation_style=citation_style,
        )

    def compile_text(
        self,
        text: str,
        *,
        base_dir: Path | None = None,
        stem: str = "document",
        output_dir: Path | None = None,
        formats: Iterable[str] | None = None,
        bibliography: Iterable[Path] | None = None,
        citation_style: str | None = None,
    ) -> CompileResult:
        document = self.parser.parse_text(text)
        return self.run(
            document,
            base_dir=Path(base_dir) if base_dir is not None else Path.cwd(),
            stem=stem,
            output_dir=output_dir,
            formats=formats,
            bibliography=bibliography,
            citation_style=citation_style,
        )

    def run(
        self,
        document: Document,
        *,
        base_dir: Path,
        stem: str,
        output_dir: Path | None = None,
        formats: Iterable[str] | None = None,
        bibliography: Iterable[Path] | None = None,
        citation_style: str | None = None,
    ) -> CompileResult:
        settings = self.settings
        metadata = document.metadata
        # Metadata problems surface before any fragment runs.
        targets = self._select_formats(metadata, formats)
        style = citation_style or metadata.citation_style or settings.citation_style
        try:
            citations = CitationProcessor(
                self._load_bibliography(metadata, Path(base_dir), bibliography),
                style=style,
                link=metadata.link_citations,
            )
        except ValueError as exc:
            raise MalformedMetadata(str(exc)) from exc

        resource_dir = Path(output_dir) if output_dir is not None else Path(base_dir)
        context = EvaluationContext(
            figure_dir=resource_dir / f"{stem}_files",
            engines=settings.engines,
            figure_format=settings.figure_format,
            figure_dpi=settings.figure_dpi,
            default_size=(settings.figure_width, settings.figure_height),
        )
        results = [context.evaluate(fragment) for fragment in document.fragments()]
        logger.info("Evaluated %d fragment(s) from %s", len(results), document.source_path or "<text>")

        stitched = Stitcher(resource_dir).stitch(document, results)

        diagnostics: list[ReprodocError] = []
        final = finalize(stitched, citations, diagnostics, references_title=settings.references_title)

        result = CompileResult(
            document=document,
            results=results,
            stitched=final,
            diagnostics=diagnostics,
            bindings=context.bindings(),
        )
        for fmt, options in targets:
            renderer = get_renderer(fmt, settings)
            artifact = renderer.render(final, options)
            result.artifacts[fmt] = artifact
            if output_dir is not None:
                result.outputs[fmt] = self._write(artifact, Path(output_dir), stem, renderer.extension, document)
        return result

    def _select_formats(
        self, metadata: Metadata, formats: Iterable[str] | None
    ) -> list[tuple[str, Mapping[str, Any]]]:
        declared: dict[str, Mapping[str, Any]] = {}
        for spec in metadata.output_formats:
            declared.setdefault(canonical_format(spec.name), spec.options)

        if formats:
            requested = [canonical_format(name) for name in formats]
        elif declared:
            requested = list(declared)
        else:
            requested = [canonical_format(name) for name in self.settings.default_formats]

        targets: list[tuple[str, Mapping[str, Any]]] = []
        for fmt in requested:
            if fmt not in (t[0] for t in targets):
                targets.append((fmt, declared.get(fmt, {})))
        return targets

    def _load_bibliography(
        self, metadata: Metadata, base_dir: Path, extra: Iterable[Path] | None
    ) -> Bibliography:
        paths = [base_dir / p for p in metadata.bibliography]
        paths.extend(Path(p) for p in (extra or ()))
        existing = []
        for path in paths:
            if path.is_file():
                existing.append(path)
            else:
                logger.warning("Bibliography file not found: %s", path)
        return Bibliography.load(existing)

    def _write(self, artifact: str | bytes, output_dir: Path, stem: str, extension: str, document: Document) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / f"{stem}{extension}"
        if document.source_path is not None and path.resolve() == document.source_path.resolve():
            path = output_dir / f"{stem}.knit{extension}"
        if isinstance(artifact, bytes):
            path.write_bytes(artifact)
        else:
            path.write_text(artifact, encoding="utf-8")
        logger.info("Wrote %s", path)
        return path


def compile_document(input_path: Path, **kwargs: Any) -> CompileResult:
    """Compile ``input_path`` with the default settings."""
    return Compiler().compile(input_path, **kwargs)
