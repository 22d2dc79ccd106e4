"""
Node Kind Definitions.

Definitions for the node kinds available in the flow builder.
"""

from ..config import NodeKind, PortRole
from ..models import NodeDefinition, PortDefinition


# =============================================================================
# Message Nodes
# =============================================================================

MESSAGE_NODE = NodeDefinition(
    kind=NodeKind.MESSAGE,
    name="Message",
    description="Send a text message",
    icon="message",
    inputs=[
        PortDefinition(
            id=PortRole.INPUT.value,
            name="Previous Step",
            role=PortRole.INPUT,
            multiple=True,
            description="Accepts any number of incoming links",
        ),
    ],
    outputs=[
        PortDefinition(
            id=PortRole.OUTPUT.value,
            name="Next Step",
            role=PortRole.OUTPUT,
            multiple=False,
            description="Sends to exactly one next step",
        ),
    ],
    default_data={
        "label": "New Message",
        "text": "Enter your message here...",
    },
)


# =============================================================================
# All Nodes
# =============================================================================

ALL_NODES = [
    MESSAGE_NODE,
]
