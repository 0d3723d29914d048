"""reprodoc CLI entrypoint."""

from __future__ import annotations

from pathlib import Path

import click

from reprodoc.compiler import Compiler
from reprodoc.config.logging_config import setup_logger
from reprodoc.config.settings import get_settings
from reprodoc.errors import ReprodocError
from reprodoc.renderer import FORMAT_ALIASES
from reprodoc.stitch.citations import STYLES

_SOURCE_EXTENSIONS = (".rmd", ".qmd", ".md", ".markdown", ".txt")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for rendered files (defaults to the input's directory)",
)
@click.option(
    "--format",
    "-f",
    "formats",
    multiple=True,
    type=click.Choice(sorted(FORMAT_ALIASES), case_sensitive=False),
    help="Target format; repeat for several. Overrides the document's output list.",
)
@click.option(
    "--bibliography",
    "-b",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Additional BibTeX or CSL-JSON file",
)
@click.option(
    "--citation-style",
    type=click.Choice(STYLES, case_sensitive=False),
    default=None,
    help="Citation style (defaults to the document's csl-style or settings)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
def main(
    input_path: Path,
    output_dir: Path | None,
    formats: tuple[str, ...],
    bibliography: tuple[Path, ...],
    citation_style: str | None,
    verbose: bool,
) -> None:
    """Compile a literate document, running its Python fragments, into HTML, PDF or Markdown."""
    settings = get_settings()
    setup_logger(settings, level="DEBUG" if verbose else None)
    _check_source(input_path)

    compiler = Compiler(settings)
    try:
        result = compiler.compile(
            input_path,
            output_dir=output_dir or input_path.parent,
            formats=formats or None,
            bibliography=bibliography,
            citation_style=citation_style.lower() if citation_style else None,
        )
    except (ReprodocError, RuntimeError) as exc:
        raise click.ClickException(f"{input_path}: {exc}") from exc

    for diagnostic in result.diagnostics:
        click.echo(f"Warning: {diagnostic}", err=True)
    for path in result.outputs.values():
        click.echo(f"Rendered: {path}")


def _check_source(input_path: Path) -> None:
    if not input_path.name.lower().endswith(_SOURCE_EXTENSIONS):
        raise click.ClickException(
            f"Unsupported input type: {input_path.name} (expected .Rmd, .qmd, .md or .markdown)"
        )


if __name__ == "__main__":  # pragma: no cover
    main()
