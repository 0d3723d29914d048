from pathlib import Path

from click.testing import CliRunner

from reprodoc.cli import main


def test_cli_renders_requested_formats(tmp_path: Path) -> None:
    source = tmp_path / "report.Rmd"
    source.write_text("---\ntitle: Report\n---\nTotal: `{python} 20 + 22`.\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    result = CliRunner().invoke(main, [str(source), "-o", str(out_dir), "-f", "md", "-f", "html"])

    assert result.exit_code == 0, result.output
    assert "Rendered:" in result.output
    assert (out_dir / "report.md").read_text(encoding="utf-8") == "Total: 42.\n"
    assert "<title>Report</title>" in (out_dir / "report.html").read_text(encoding="utf-8")


def test_cli_reports_failing_fragment(tmp_path: Path) -> None:
    source = tmp_path / "broken.Rmd"
    source.write_text("```{python boom}\nraise RuntimeError('nope')\n```\n", encoding="utf-8")

    result = CliRunner().invoke(main, [str(source), "-f", "md"])

    assert result.exit_code == 1
    assert "fragment 'boom' at line 2 failed" in result.output
    assert not (tmp_path / "broken.md").exists()


def test_cli_rejects_unknown_input_type(tmp_path: Path) -> None:
    source = tmp_path / "paper.docx"
    source.write_text("not a literate document", encoding="utf-8")

    result = CliRunner().invoke(main, [str(source)])

    assert result.exit_code == 1
    assert "Unsupported input type" in result.output
