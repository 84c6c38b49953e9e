"""Synchronize shared preset documents across project repositories."""

__version__ = "0.1.0"
