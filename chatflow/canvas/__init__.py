"""
Canvas Module.

Graph store and flow validation. Editing sessions live in
``chatflow.canvas.manager``.
"""

from .store import GraphStore, check_integrity
from .validator import FlowValidator, validate_flow

__all__ = [
    "GraphStore",
    "check_integrity",
    "FlowValidator",
    "validate_flow",
]
