"""Preset retrieval transports and the fetch orchestrator."""

from .classify import classify_transport_error, most_specific
from .orchestrator import PresetFetcher
from .transports import GhCliTransport, HttpTransport, LocalTransport

__all__ = [
    "GhCliTransport",
    "HttpTransport",
    "LocalTransport",
    "PresetFetcher",
    "classify_transport_error",
    "most_specific",
]
