"""
Data Models for the Chatbot Flow Builder.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from .config import NodeKind, PortRole, SaveStatus
from .exceptions import UnknownNodeKindError


# =============================================================================
# Node Models
# =============================================================================

# Node type names written by the browser canvas
NODE_TYPE_ALIASES = {
    "textNode": NodeKind.MESSAGE,
}


@dataclass(frozen=True)
class Position:
    """Canvas position of a node. Owned by the renderer, persisted with the node."""

    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Position":
        data = data or {}
        return cls(x=float(data.get("x", 0.0)), y=float(data.get("y", 0.0)))


@dataclass
class PortDefinition:
    """Definition of a node handle."""

    id: str
    name: str
    role: PortRole
    multiple: bool = False  # Can hold more than one link
    description: str = ""


@dataclass
class NodeDefinition:
    """Definition of a node kind."""

    kind: NodeKind
    name: str
    description: str
    icon: str

    # Ports
    inputs: List[PortDefinition] = field(default_factory=list)
    outputs: List[PortDefinition] = field(default_factory=list)

    # Content payload a new node starts with
    default_data: Dict[str, Any] = field(default_factory=dict)

    def has_input(self, port_id: str) -> bool:
        return any(p.id == port_id for p in self.inputs)

    def has_output(self, port_id: str) -> bool:
        return any(p.id == port_id for p in self.outputs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "inputs": [
                {"id": i.id, "name": i.name, "multiple": i.multiple}
                for i in self.inputs
            ],
            "outputs": [
                {"id": o.id, "name": o.name, "multiple": o.multiple}
                for o in self.outputs
            ],
            "default_data": dict(self.default_data),
        }


@dataclass(frozen=True)
class FlowNode:
    """Node placed on the canvas. Replaced, never mutated in place."""

    id: str
    kind: NodeKind
    position: Position
    data: Mapping[str, Any]

    def __post_init__(self):
        # Content is read-only; edits go through the store
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    @property
    def text(self) -> str:
        return self.data.get("text", "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "position": self.position.to_dict(),
            "data": dict(self.data),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowNode":
        kind_name = data.get("type", NodeKind.MESSAGE.value)
        kind = NODE_TYPE_ALIASES.get(kind_name)
        if kind is None:
            try:
                kind = NodeKind(kind_name)
            except ValueError:
                raise UnknownNodeKindError(f"Unknown node kind: {kind_name}")

        return cls(
            id=data["id"],
            kind=kind,
            position=Position.from_dict(data.get("position")),
            data=data.get("data") or {},
        )


# =============================================================================
# Link Models
# =============================================================================


@dataclass(frozen=True)
class FlowLink:
    """Directed link from a node's output handle to a node's input handle."""

    id: str
    source: str
    source_handle: str
    target: str
    target_handle: str

    @property
    def source_key(self) -> Tuple[str, str]:
        return (self.source, self.source_handle)

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "sourceHandle": self.source_handle,
            "target": self.target,
            "targetHandle": self.target_handle,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowLink":
        return cls(
            id=data["id"],
            source=data["source"],
            source_handle=data.get("sourceHandle") or PortRole.OUTPUT.value,
            target=data["target"],
            target_handle=data.get("targetHandle") or PortRole.INPUT.value,
        )


# =============================================================================
# Snapshot
# =============================================================================


@dataclass(frozen=True)
class GraphSnapshot:
    """
    Nodes and links at a point in time.

    Insertion order is kept for deterministic iteration only.
    """

    nodes: Tuple[FlowNode, ...] = ()
    links: Tuple[FlowLink, ...] = ()

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def get_link(self, link_id: str) -> Optional[FlowLink]:
        return next((l for l in self.links if l.id == link_id), None)

    def incoming_links(self, node_id: str) -> List[FlowLink]:
        return [l for l in self.links if l.target == node_id]

    def outgoing_links(self, node_id: str) -> List[FlowLink]:
        return [l for l in self.links if l.source == node_id]

    def replace(
        self,
        nodes: Optional[Iterable[FlowNode]] = None,
        links: Optional[Iterable[FlowLink]] = None,
    ) -> "GraphSnapshot":
        """Return a new snapshot with the given collections swapped in."""
        return GraphSnapshot(
            nodes=tuple(self.nodes if nodes is None else nodes),
            links=tuple(self.links if links is None else links),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [l.to_dict() for l in self.links],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphSnapshot":
        # "edges" is what canvas libraries call links
        links = data.get("links")
        if links is None:
            links = data.get("edges", [])

        return cls(
            nodes=tuple(FlowNode.from_dict(n) for n in data.get("nodes", [])),
            links=tuple(FlowLink.from_dict(l) for l in links),
        )


# =============================================================================
# Validation & Save Models
# =============================================================================


@dataclass
class ValidationResult:
    """Result of flow validation."""

    valid: bool
    reason: Optional[str] = None
    entry_node_ids: List[str] = field(default_factory=list)
    checked_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "reason": self.reason,
            "entry_node_ids": list(self.entry_node_ids),
        }


@dataclass
class SaveResult:
    """Outcome of a save attempt."""

    status: SaveStatus
    message: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    validation: Optional[ValidationResult] = None

    @property
    def saved(self) -> bool:
        return self.status == SaveStatus.SUCCESS


# =============================================================================
# API Request/Response Models
# =============================================================================


class PositionModel(BaseModel):
    """Canvas coordinates."""

    x: float
    y: float


class AddNodeRequest(BaseModel):
    """Request to add a node."""

    kind: NodeKind = NodeKind.MESSAGE
    position: Optional[PositionModel] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class UpdateNodeRequest(BaseModel):
    """Request to merge content into a node."""

    data: Dict[str, Any]


class ConnectRequest(BaseModel):
    """Request to draw a link."""

    source: str = Field(..., min_length=1)
    source_handle: str = Field(default=PortRole.OUTPUT.value, alias="sourceHandle")
    target: str = Field(..., min_length=1)
    target_handle: str = Field(default=PortRole.INPUT.value, alias="targetHandle")

    model_config = {"populate_by_name": True}


class FlowResponse(BaseModel):
    """Response with a flow snapshot."""

    flow_id: str
    nodes: List[Dict[str, Any]]
    links: List[Dict[str, Any]]


class ValidateFlowResponse(BaseModel):
    """Response from flow validation."""

    valid: bool
    reason: Optional[str] = None
    entry_node_ids: List[str] = Field(default_factory=list)


class SaveFlowResponse(BaseModel):
    """Response from a successful save."""

    status: str
    flow: Dict[str, Any]


class NodeListResponse(BaseModel):
    """Response with available node kinds."""

    nodes: List[Dict[str, Any]]


# =============================================================================
# Export
# =============================================================================


__all__ = [
    # Node
    "Position",
    "PortDefinition",
    "NodeDefinition",
    "FlowNode",
    "NODE_TYPE_ALIASES",
    # Link
    "FlowLink",
    # Snapshot
    "GraphSnapshot",
    # Validation & save
    "ValidationResult",
    "SaveResult",
    # API
    "PositionModel",
    "AddNodeRequest",
    "UpdateNodeRequest",
    "ConnectRequest",
    "FlowResponse",
    "ValidateFlowResponse",
    "SaveFlowResponse",
    "NodeListResponse",
]
