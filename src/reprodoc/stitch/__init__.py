"""Stitching: results into narrative, cross references and citations."""

from .citations import Bibliography, CitationProcessor
from .crossref import CrossRefIndex
from .stitcher import StitchedDocument, Stitcher

__all__ = ["Bibliography", "CitationProcessor", "CrossRefIndex", "StitchedDocument", "Stitcher"]
