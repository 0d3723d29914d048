"""Evaluation engine package."""

from .context import EvaluationContext, EvaluationResult
from .renderables import AsIs, Figure, Renderable, Table, kind_of, narrative_of

__all__ = [
    "AsIs",
    "EvaluationContext",
    "EvaluationResult",
    "Figure",
    "Renderable",
    "Table",
    "kind_of",
    "narrative_of",
]
