"""Preset pointer resolution and merge generation."""

from .merge import generate_merged
from .resolver import parse_source, resolve_pointers

__all__ = ["generate_merged", "parse_source", "resolve_pointers"]
