"""
Graph Store.

Single source of truth for the nodes and links of one canvas.
"""

import dataclasses
import logging
import uuid
from collections import Counter, deque
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from ..config import CanvasConfig, NodeKind, get_settings
from ..exceptions import GraphIntegrityError, UnknownNodeKindError
from ..models import FlowLink, FlowNode, GraphSnapshot, Position
from ..nodes import NodeRegistry, get_node_registry

logger = logging.getLogger(__name__)

Listener = Callable[[GraphSnapshot], None]


def check_integrity(snapshot: GraphSnapshot) -> None:
    """
    Verify the structural invariants of a snapshot.

    Raises:
        GraphIntegrityError: on duplicate ids, dangling link endpoints or
            more than one link leaving the same source handle
    """
    node_ids = snapshot.node_ids

    duplicates = [i for i, count in Counter(node_ids).items() if count > 1]
    if duplicates:
        raise GraphIntegrityError(f"Duplicate node IDs: {duplicates}")

    duplicates = [
        i for i, count in Counter(l.id for l in snapshot.links).items() if count > 1
    ]
    if duplicates:
        raise GraphIntegrityError(f"Duplicate link IDs: {duplicates}")

    known = set(node_ids)
    for link in snapshot.links:
        if link.source not in known or link.target not in known:
            raise GraphIntegrityError(
                f"Link {link.id} references a missing node "
                f"({link.source} -> {link.target})"
            )

    for (source, handle), count in Counter(l.source_key for l in snapshot.links).items():
        if count > 1:
            raise GraphIntegrityError(
                f"Source handle {source}:{handle} has {count} outgoing links"
            )


class GraphStore:
    """
    Holds the canonical snapshot and applies edit intents to it.

    Every mutation builds a complete candidate snapshot and swaps it in
    at once, so readers only ever see whole snapshots. Listeners are
    called synchronously, in subscription order, after each change.
    Changes made from inside a listener are delivered once every
    listener has seen the current one.
    Intents that reference a missing node or link are no-ops and
    report it through their return value.
    """

    def __init__(
        self,
        registry: Optional[NodeRegistry] = None,
        config: Optional[CanvasConfig] = None,
    ):
        """Initialize an empty canvas."""
        self.config = config or get_settings().canvas
        self.registry = registry or get_node_registry()

        self._snapshot = GraphSnapshot()
        self._listeners: List[Listener] = []
        self._pending: Deque[GraphSnapshot] = deque()
        self._notifying = False

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> GraphSnapshot:
        """Current snapshot."""
        return self._snapshot

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return self._snapshot.get_node(node_id)

    def get_link(self, link_id: str) -> Optional[FlowLink]:
        return self._snapshot.get_link(link_id)

    def outgoing_link(self, node_id: str, source_handle: str) -> Optional[FlowLink]:
        """Get the link leaving a source handle, if any."""
        return next(
            (
                l for l in self._snapshot.links
                if l.source_key == (node_id, source_handle)
            ),
            None,
        )

    def stats(self) -> Dict[str, int]:
        return {
            "nodes": len(self._snapshot.nodes),
            "links": len(self._snapshot.links),
        }

    # -------------------------------------------------------------------------
    # Change notification
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -------------------------------------------------------------------------
    # Node intents
    # -------------------------------------------------------------------------

    def add_node(
        self,
        kind: Union[NodeKind, str] = NodeKind.MESSAGE,
        position: Optional[Position] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> FlowNode:
        """
        Create a node with a fresh id and append it to the canvas.

        Args:
            kind: Registered node kind
            position: Canvas position (defaults to the configured drop point)
            data: Initial content, merged over the kind's defaults

        Returns:
            Created FlowNode
        """
        node_def = self.registry.get_by_name(kind.value if isinstance(kind, NodeKind) else kind)
        if node_def is None:
            raise UnknownNodeKindError(f"Unknown node kind: {kind}")

        node = FlowNode(
            id=f"{node_def.kind.value}-{uuid.uuid4().hex}",
            kind=node_def.kind,
            position=position or Position(self.config.default_x, self.config.default_y),
            data={**node_def.default_data, **(data or {})},
        )

        self._commit(self._snapshot.replace(nodes=self._snapshot.nodes + (node,)))

        logger.debug(f"Added node: {node.id}")
        return node

    def update_node_content(
        self,
        node_id: str,
        partial: Dict[str, Any],
    ) -> Optional[FlowNode]:
        """
        Merge partial content into a node's payload.

        Returns:
            Updated FlowNode or None if not found
        """
        node = self._snapshot.get_node(node_id)
        if not node:
            logger.debug(f"Update ignored, node not found: {node_id}")
            return None

        updated = dataclasses.replace(node, data={**node.data, **partial})
        self._replace_node(updated)
        return updated

    def move_node(self, node_id: str, position: Position) -> Optional[FlowNode]:
        """
        Record a node's new canvas position.

        Returns:
            Updated FlowNode or None if not found
        """
        node = self._snapshot.get_node(node_id)
        if not node:
            logger.debug(f"Move ignored, node not found: {node_id}")
            return None

        if node.position == position:
            return node

        updated = dataclasses.replace(node, position=position)
        self._replace_node(updated)
        return updated

    def remove_node(self, node_id: str) -> bool:
        """
        Remove a node together with every link touching it.

        Returns:
            True if the node existed
        """
        if not self._snapshot.get_node(node_id):
            logger.debug(f"Remove ignored, node not found: {node_id}")
            return False

        links = [l for l in self._snapshot.links if not l.touches(node_id)]
        dropped = len(self._snapshot.links) - len(links)

        self._commit(
            self._snapshot.replace(
                nodes=[n for n in self._snapshot.nodes if n.id != node_id],
                links=links,
            )
        )

        logger.debug(f"Removed node: {node_id} ({dropped} links)")
        return True

    # -------------------------------------------------------------------------
    # Link intents
    # -------------------------------------------------------------------------

    def connect(
        self,
        source: str,
        source_handle: str,
        target: str,
        target_handle: str,
    ) -> Optional[FlowLink]:
        """
        Draw a link from a source handle to a target handle.

        A source handle sends to exactly one next step: an existing link
        on the same (source, source_handle) is replaced by the new one.

        Returns:
            Created FlowLink, or None if the link was rejected
        """
        rejection = self.check_connection(source, source_handle, target, target_handle)
        if rejection:
            logger.debug(f"Connect ignored: {rejection}")
            return None

        link = FlowLink(
            id=f"link-{uuid.uuid4().hex}",
            source=source,
            source_handle=source_handle,
            target=target,
            target_handle=target_handle,
        )

        links = [
            l for l in self._snapshot.links
            if l.source_key != link.source_key
        ]
        if len(links) != len(self._snapshot.links):
            logger.debug(f"Replacing outgoing link of {source}:{source_handle}")
        links.append(link)

        self._commit(self._snapshot.replace(links=links))

        logger.debug(f"Connected {source}:{source_handle} -> {target}:{target_handle}")
        return link

    def remove_link(self, link_id: str) -> bool:
        """
        Remove a link by id.

        Returns:
            True if the link existed
        """
        if not self._snapshot.get_link(link_id):
            logger.debug(f"Remove ignored, link not found: {link_id}")
            return False

        self._commit(
            self._snapshot.replace(
                links=[l for l in self._snapshot.links if l.id != link_id]
            )
        )
        return True

    # -------------------------------------------------------------------------
    # Whole-canvas intents
    # -------------------------------------------------------------------------

    def load(self, snapshot: GraphSnapshot) -> None:
        """
        Replace the canvas with a stored snapshot.

        Raises:
            GraphIntegrityError: if the snapshot breaks an invariant
        """
        check_integrity(snapshot)
        self._commit(snapshot, checked=True)

        logger.info(
            f"Loaded canvas: {len(snapshot.nodes)} nodes, {len(snapshot.links)} links"
        )

    def clear(self) -> None:
        """Remove every node and link."""
        if not self._snapshot.nodes and not self._snapshot.links:
            return

        self._commit(GraphSnapshot())

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def check_connection(
        self,
        source: str,
        source_handle: str,
        target: str,
        target_handle: str,
    ) -> Optional[str]:
        """Return why a connection is rejected, or None if it is allowed."""
        source_node = self._snapshot.get_node(source)
        if not source_node:
            return f"source node not found: {source}"

        target_node = self._snapshot.get_node(target)
        if not target_node:
            return f"target node not found: {target}"

        if source == target and not self.config.allow_self_loops:
            return f"self-loop on {source}"

        source_def = self.registry.get(source_node.kind)
        if source_def and not source_def.has_output(source_handle):
            return f"{source_handle} is not an output of {source_node.kind.value}"

        target_def = self.registry.get(target_node.kind)
        if target_def and not target_def.has_input(target_handle):
            return f"{target_handle} is not an input of {target_node.kind.value}"

        return None

    def _replace_node(self, updated: FlowNode) -> None:
        self._commit(
            self._snapshot.replace(
                nodes=[
                    updated if n.id == updated.id else n
                    for n in self._snapshot.nodes
                ]
            )
        )

    def _commit(self, candidate: GraphSnapshot, checked: bool = False) -> None:
        """Swap in a candidate snapshot and notify listeners."""
        if self.config.check_invariants and not checked:
            check_integrity(candidate)

        self._snapshot = candidate
        self._pending.append(candidate)

        # Commits made by a listener are delivered after the current round
        if self._notifying:
            return

        self._notifying = True
        try:
            while self._pending:
                snapshot = self._pending.popleft()
                for listener in list(self._listeners):
                    try:
                        listener(snapshot)
                    except Exception as e:
                        logger.exception(f"Change listener failed: {e}")
        finally:
            self._notifying = False
