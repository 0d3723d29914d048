"""Parser package."""

from .base import Document, Fragment, FragmentOptions, Metadata, NarrativeText, OutputSpec
from .frontmatter import dump_frontmatter, parse_frontmatter, split_frontmatter
from .options import parse_options
from .source_parser import SourceParser

__all__ = [
    "Document",
    "Fragment",
    "FragmentOptions",
    "Metadata",
    "NarrativeText",
    "OutputSpec",
    "SourceParser",
    "dump_frontmatter",
    "parse_frontmatter",
    "parse_options",
    "split_frontmatter",
]
