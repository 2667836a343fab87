"""Core services: cascades, toggles, read views and content handlers."""

from videohub.services.aggregation import AggregationAssembler
from videohub.services.content import ContentService
from videohub.services.integrity import CascadeReport, IntegrityCoordinator
from videohub.services.toggles import ToggleEngine, ToggleOutcome

__all__ = [
    "AggregationAssembler",
    "CascadeReport",
    "ContentService",
    "IntegrityCoordinator",
    "ToggleEngine",
    "ToggleOutcome",
]
