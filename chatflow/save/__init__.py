"""
Save Module.

Validation-gated saving of canvases to a storage backend.
"""

from .storage import FlowStorage, InMemoryFlowStorage, JsonFileFlowStorage, create_storage
from .workflow import SaveWorkflow, serialize_snapshot

__all__ = [
    "FlowStorage",
    "InMemoryFlowStorage",
    "JsonFileFlowStorage",
    "create_storage",
    "SaveWorkflow",
    "serialize_snapshot",
]
