"""
Save Workflow.

Validates the current canvas and hands it to a storage backend.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..canvas.store import GraphStore
from ..canvas.validator import FlowValidator
from ..config import SaveConfig, SaveStatus, get_settings
from ..exceptions import FlowStorageError
from ..models import GraphSnapshot, SaveResult
from .storage import FlowStorage

logger = logging.getLogger(__name__)

SAVE_FAILED = "Failed to save flow. Please try again."
SAVE_IN_PROGRESS = "A save is already in progress"


def serialize_snapshot(
    snapshot: GraphSnapshot,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Serialize a snapshot as {nodes, links, timestamp} for storage."""
    timestamp = timestamp or datetime.now(timezone.utc)
    return {
        **snapshot.to_dict(),
        "timestamp": timestamp.isoformat(),
    }


class SaveWorkflow:
    """
    Save action for one canvas.

    Only one save may be outstanding at a time; a second request while
    saving is turned away with SaveStatus.BUSY. A failed save never
    touches the graph.
    """

    def __init__(
        self,
        store: GraphStore,
        storage: FlowStorage,
        validator: Optional[FlowValidator] = None,
        config: Optional[SaveConfig] = None,
    ):
        self.store = store
        self.storage = storage
        self.validator = validator or FlowValidator()
        self.config = config or get_settings().save

        self._status = SaveStatus.IDLE
        self.last_result: Optional[SaveResult] = None

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def is_busy(self) -> bool:
        return self._status == SaveStatus.SAVING

    async def save(self, flow_id: str) -> SaveResult:
        """
        Validate the current snapshot and persist it.

        Args:
            flow_id: Key under which the flow is stored

        Returns:
            SaveResult with the stored payload on success
        """
        if self.is_busy:
            logger.warning(f"Save rejected, already saving flow: {flow_id}")
            return SaveResult(status=SaveStatus.BUSY, message=SAVE_IN_PROGRESS)

        self._status = SaveStatus.SAVING
        try:
            result = await self._save(flow_id)
        finally:
            if self._status == SaveStatus.SAVING:
                self._status = SaveStatus.ERROR

        self._status = result.status
        self.last_result = result
        return result

    async def _save(self, flow_id: str) -> SaveResult:
        snapshot = self.store.snapshot

        validation = self.validator.validate(snapshot)
        if not validation.valid:
            logger.info(f"Flow {flow_id} not saved: {validation.reason}")
            return SaveResult(
                status=SaveStatus.ERROR,
                message=validation.reason,
                validation=validation,
            )

        payload = serialize_snapshot(snapshot)

        try:
            await asyncio.wait_for(
                self.storage.save(flow_id, payload),
                timeout=self.config.timeout_s,
            )
        except asyncio.TimeoutError:
            logger.error(f"Saving flow {flow_id} timed out after {self.config.timeout_s}s")
            return SaveResult(status=SaveStatus.ERROR, message=SAVE_FAILED)
        except FlowStorageError as e:
            logger.error(f"Saving flow {flow_id} failed: {e}")
            return SaveResult(status=SaveStatus.ERROR, message=SAVE_FAILED)
        except Exception as e:
            logger.exception(f"Unexpected error saving flow {flow_id}: {e}")
            return SaveResult(status=SaveStatus.ERROR, message=SAVE_FAILED)

        logger.info(
            f"Saved flow {flow_id}: {len(snapshot.nodes)} nodes, {len(snapshot.links)} links"
        )
        return SaveResult(
            status=SaveStatus.SUCCESS,
            payload=payload,
            validation=validation,
        )
