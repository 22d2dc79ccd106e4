"""
Node Kinds and Registry.

This module provides the node kind definitions and registry
for the flow builder palette.
"""

from .registry import NodeRegistry, get_node_registry
from .definitions import ALL_NODES, MESSAGE_NODE

__all__ = [
    "NodeRegistry",
    "get_node_registry",
    "ALL_NODES",
    "MESSAGE_NODE",
]
