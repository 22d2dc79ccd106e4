"""
Node Registry.

Manages registration and lookup of node kinds.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from ..config import NodeKind
from ..models import NodeDefinition
from .definitions import ALL_NODES

logger = logging.getLogger(__name__)


class NodeRegistry:
    """
    Registry for node kind definitions.

    New kinds only need a NodeKind value and a NodeDefinition.
    """

    def __init__(self, definitions: Optional[List[NodeDefinition]] = None):
        """Initialize registry with the given or built-in node definitions."""
        self._nodes: Dict[NodeKind, NodeDefinition] = {}

        for node_def in ALL_NODES if definitions is None else definitions:
            self.register(node_def)

        logger.debug(f"Registered {len(self._nodes)} node kinds")

    def register(self, node_def: NodeDefinition) -> None:
        """Register a node definition."""
        if node_def.kind in self._nodes:
            logger.warning(f"Overwriting existing node kind: {node_def.kind.value}")

        self._nodes[node_def.kind] = node_def

    def get(self, kind: NodeKind) -> Optional[NodeDefinition]:
        """Get node definition by kind."""
        return self._nodes.get(kind)

    def get_by_name(self, kind_name: str) -> Optional[NodeDefinition]:
        """Get node definition by kind name string."""
        try:
            return self.get(NodeKind(kind_name))
        except ValueError:
            return None

    def list_all(self) -> List[NodeDefinition]:
        """List all registered node definitions."""
        return list(self._nodes.values())

    def to_catalog(self) -> List[Dict[str, Any]]:
        """Export registry as a palette listing."""
        return [n.to_dict() for n in self._nodes.values()]

    def __contains__(self, kind: NodeKind) -> bool:
        return kind in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)


@lru_cache
def get_node_registry() -> NodeRegistry:
    """Get the singleton node registry."""
    return NodeRegistry()
