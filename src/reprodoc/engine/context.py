"""Shared evaluation context for a single compilation run."""

from __future__ import annotations

import ast
import builtins
import contextlib
import io
import logging
import sys
import traceback
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from reprodoc.errors import FragmentEvaluationError
from reprodoc.parser.base import Fragment

logger = logging.getLogger(__name__)

DEFAULT_ENGINES = ("python", "py", "python3")


@dataclass(slots=True)
class EvaluationResult:
    fragment: Fragment
    value: Any = None
    has_value: bool = False
    output: str = ""
    warnings: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    figures: list[Path] = field(default_factory=list)
    error: str | None = None
    skipped: bool = False


class EvaluationContext:
    """One mutable namespace that every fragment of a run executes in.

    Fragments must be passed in source order; each binding a fragment makes
    is visible to the fragments evaluated after it and to no earlier one.
    """

    def __init__(
        self,
        *,
        figure_dir: Path | None = None,
        engines: Iterable[str] = DEFAULT_ENGINES,
        figure_format: str = "png",
        figure_dpi: int = 96,
        default_size: tuple[float, float] = (7.0, 5.0),
    ) -> None:
        self.figure_dir = Path(figure_dir) if figure_dir is not None else None
        self.engines = {e.lower() for e in engines}
        self.figure_format = figure_format
        self.figure_dpi = figure_dpi
        self.default_size = default_size
        self.namespace: dict[str, Any] = {"__name__": "__reprodoc__", "__builtins__": builtins}
        self.history: list[EvaluationResult] = []
        self._figure_count = 0

    def bindings(self) -> dict[str, Any]:
        """User-visible names bound so far."""
        return {k: v for k, v in self.namespace.items() if not k.startswith("__")}

    def evaluate(self, fragment: Fragment) -> EvaluationResult:
        result = EvaluationResult(fragment=fragment)
        self.history.append(result)
        if not fragment.options.evaluate:
            logger.debug("Skipping fragment %s (evaluate=false)", _describe_fragment(fragment))
            result.skipped = True
            return result

        stdout, stderr = io.StringIO(), io.StringIO()
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
                    result.value, result.has_value = self._run(fragment)
            except Exception as exc:
                cause = f"{type(exc).__name__}: {exc}"
                line = _error_line(exc, fragment)
                if not fragment.options.error:
                    raise FragmentEvaluationError(fragment.label, line, cause) from exc
                logger.warning("Fragment %s failed at line %d, continuing: %s", _describe_fragment(fragment), line, cause)
                result.error = cause

        result.output = stdout.getvalue()
        result.warnings = [f"{w.category.__name__}: {w.message}" for w in caught]
        result.messages = [line for line in stderr.getvalue().splitlines() if line.strip()]

        if fragment.options.suppress_warnings and result.warnings:
            logger.debug("Suppressed %d warning(s) from %s", len(result.warnings), _describe_fragment(fragment))
            result.warnings = []
        if fragment.options.suppress_messages and result.messages:
            logger.debug("Suppressed %d message(s) from %s", len(result.messages), _describe_fragment(fragment))
            result.messages = []

        if fragment.kind == "block":
            result.figures = self._capture_figures(fragment, result)
        return result

    def _run(self, fragment: Fragment) -> tuple[Any, bool]:
        if fragment.engine.lower() not in self.engines:
            raise LookupError(
                f"no evaluation engine registered for {fragment.engine!r}; "
                f"fragments run as Python, write {{python}} instead (known engines: {', '.join(sorted(self.engines))})"
            )

        filename = _filename(fragment)
        if fragment.kind == "inline":
            tree = ast.parse(fragment.code.strip(), filename=filename, mode="eval")
            ast.increment_lineno(tree, fragment.line - 1)
            return eval(compile(tree, filename, "eval"), self.namespace), True

        tree = ast.parse(fragment.code, filename=filename, mode="exec")
        # Code starts on the line after the opening fence and any `#|` option lines.
        ast.increment_lineno(tree, fragment.line + fragment.code_offset)
        last: ast.Expression | None = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            last = ast.Expression(tree.body.pop().value)

        exec(compile(tree, filename, "exec"), self.namespace)
        if last is None:
            return None, False
        value = eval(compile(last, filename, "eval"), self.namespace)
        return value, value is not None

    # ------------------------------------------------------------------
    # Figures
    # ------------------------------------------------------------------

    def _capture_figures(self, fragment: Fragment, result: EvaluationResult) -> list[Path]:
        figures: list[Any] = []
        if result.has_value and _is_figure(result.value):
            figures.append(result.value)
            result.value, result.has_value = None, False

        pyplot = sys.modules.get("matplotlib.pyplot")
        if pyplot is not None:
            for number in pyplot.get_fignums():
                figure = pyplot.figure(number)
                if not any(figure is f for f in figures):
                    figures.append(figure)

        if not figures:
            return []
        if self.figure_dir is None:
            logger.warning("Fragment %s produced figures but no figure directory is set", _describe_fragment(fragment))
            return []

        self.figure_dir.mkdir(parents=True, exist_ok=True)
        width = fragment.options.width or self.default_size[0]
        height = fragment.options.height or self.default_size[1]
        paths: list[Path] = []
        for figure in figures:
            self._figure_count += 1
            stem = fragment.label or f"fragment-{fragment.line}"
            path = self.figure_dir / f"{stem}-{self._figure_count}.{self.figure_format}"
            if hasattr(figure, "set_size_inches"):
                figure.set_size_inches(width, height)
            figure.savefig(path, dpi=self.figure_dpi)
            if pyplot is not None:
                pyplot.close(figure)
            logger.debug("Saved figure %s", path)
            paths.append(path)
        return paths


def _is_figure(value: Any) -> bool:
    return callable(getattr(value, "savefig", None)) and not isinstance(value, type)


def _filename(fragment: Fragment) -> str:
    return f"<fragment {fragment.label or fragment.line}>"


def _describe_fragment(fragment: Fragment) -> str:
    name = f"'{fragment.label}'" if fragment.label else f"{fragment.kind} fragment"
    return f"{name} (line {fragment.line})"


def _error_line(exc: BaseException, fragment: Fragment) -> int:
    """Document line the failure originated on."""
    if isinstance(exc, SyntaxError) and exc.lineno is not None:
        offset = fragment.line + fragment.code_offset if fragment.kind == "block" else fragment.line - 1
        return exc.lineno + offset
    filename = _filename(fragment)
    lines = [frame.lineno for frame in traceback.extract_tb(exc.__traceback__) if frame.filename == filename]
    return lines[-1] if lines and lines[-1] is not None else fragment.line
