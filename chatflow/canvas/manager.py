"""
Canvas Manager.

Owns one editing session per flow: its graph store and save workflow.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..config import Settings, get_settings
from ..exceptions import FlowBuilderError
from ..models import GraphSnapshot, ValidationResult
from ..nodes import NodeRegistry, get_node_registry
from ..save import FlowStorage, SaveWorkflow, create_storage
from .store import GraphStore, check_integrity
from .validator import FlowValidator

logger = logging.getLogger(__name__)


@dataclass
class FlowSession:
    """A flow being edited."""

    flow_id: str
    store: GraphStore
    save_workflow: SaveWorkflow
    created_at: datetime = field(default_factory=datetime.utcnow)


class CanvasManager:
    """
    Manages flow sessions.

    Features:
    - Session creation and lookup
    - Reopening saved flows
    - Validation and save entry points
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[FlowStorage] = None,
        registry: Optional[NodeRegistry] = None,
    ):
        """Initialize canvas manager."""
        self.settings = settings or get_settings()
        self.storage = storage or create_storage(self.settings.save)
        self.registry = registry or get_node_registry()
        self.validator = FlowValidator()

        self._sessions: Dict[str, FlowSession] = {}

    def create_session(self, flow_id: Optional[str] = None) -> FlowSession:
        """
        Open an empty canvas.

        Args:
            flow_id: Optional id, generated when omitted

        Returns:
            Created FlowSession
        """
        flow_id = flow_id or str(uuid.uuid4())
        if flow_id in self._sessions:
            raise FlowBuilderError(f"Flow already open: {flow_id}")

        store = GraphStore(registry=self.registry, config=self.settings.canvas)
        session = FlowSession(
            flow_id=flow_id,
            store=store,
            save_workflow=SaveWorkflow(
                store=store,
                storage=self.storage,
                validator=self.validator,
                config=self.settings.save,
            ),
        )
        self._sessions[flow_id] = session

        logger.info(f"Created flow session: {flow_id}")
        return session

    def get_session(self, flow_id: str) -> Optional[FlowSession]:
        """Get an open session by flow ID."""
        return self._sessions.get(flow_id)

    def list_sessions(self) -> List[FlowSession]:
        return list(self._sessions.values())

    def close_session(self, flow_id: str) -> bool:
        """Close a session. Saved data is kept."""
        session = self._sessions.pop(flow_id, None)
        if not session:
            return False

        logger.info(f"Closed flow session: {flow_id}")
        return True

    async def open_saved(self, flow_id: str) -> Optional[FlowSession]:
        """
        Reopen a saved flow, or return it if it is already open.

        Returns:
            FlowSession or None if nothing was saved under the id
        """
        session = self._sessions.get(flow_id)
        if session:
            return session

        payload = await self.storage.load(flow_id)
        if payload is None:
            return None

        snapshot = GraphSnapshot.from_dict(payload)
        check_integrity(snapshot)

        # Another caller may have reopened the flow while storage was read
        session = self._sessions.get(flow_id)
        if session:
            return session

        session = self.create_session(flow_id)
        session.store.load(snapshot)
        return session

    def validate(self, flow_id: str) -> Optional[ValidationResult]:
        """Validate the current snapshot of an open flow."""
        session = self._sessions.get(flow_id)
        if not session:
            return None

        return self.validator.validate(session.store.snapshot)
