"""
Flow Validator.

Decides whether a flow snapshot may be saved.
"""

import logging
from typing import List

from ..models import GraphSnapshot, ValidationResult

logger = logging.getLogger(__name__)

MULTIPLE_ENTRY_POINTS = "Cannot save flow: more than one node has no incoming connection"


class FlowValidator:
    """
    Validates flow structure before saving.

    A chatbot flow needs a single unambiguous starting point, so a flow
    with more than one node may have at most one node without an
    incoming link. Cycles, reachability and dangling references are
    not checked.
    """

    def validate(self, snapshot: GraphSnapshot) -> ValidationResult:
        """
        Validate a flow snapshot.

        Args:
            snapshot: Snapshot to validate

        Returns:
            ValidationResult; invalid flows are reported, never raised
        """
        if len(snapshot.nodes) <= 1:
            return ValidationResult(valid=True, entry_node_ids=snapshot.node_ids)

        entry_node_ids = self.find_entry_nodes(snapshot)

        if len(entry_node_ids) > 1:
            logger.debug(f"Flow has {len(entry_node_ids)} entry points: {entry_node_ids}")
            return ValidationResult(
                valid=False,
                reason=MULTIPLE_ENTRY_POINTS,
                entry_node_ids=entry_node_ids,
            )

        return ValidationResult(valid=True, entry_node_ids=entry_node_ids)

    def find_entry_nodes(self, snapshot: GraphSnapshot) -> List[str]:
        """Get the ids of nodes no link points to, in canvas order."""
        targets = {l.target for l in snapshot.links}
        return [node_id for node_id in snapshot.node_ids if node_id not in targets]


def validate_flow(snapshot: GraphSnapshot) -> ValidationResult:
    """Validate a snapshot with the default validator."""
    return FlowValidator().validate(snapshot)
