"""Persistent stores."""

from .selection import PresetSelectionStore

__all__ = ["PresetSelectionStore"]
