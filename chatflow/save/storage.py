"""
Flow Storage.

Persistence collaborators that receive validated flow payloads.
"""

import asyncio
import copy
import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import SaveConfig, StorageBackend
from ..exceptions import FlowStorageError

logger = logging.getLogger(__name__)

_SAFE_FLOW_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class FlowStorage(ABC):
    """Abstract base class for flow storage backends."""

    @abstractmethod
    async def save(self, flow_id: str, payload: Dict[str, Any]) -> None:
        """
        Persist a serialized flow.

        Raises:
            FlowStorageError: if the backend rejects the flow
        """
        pass

    @abstractmethod
    async def load(self, flow_id: str) -> Optional[Dict[str, Any]]:
        """Get the last saved payload of a flow, or None."""
        pass

    @abstractmethod
    async def delete(self, flow_id: str) -> bool:
        """Delete a saved flow. Returns True if it existed."""
        pass


class InMemoryFlowStorage(FlowStorage):
    """Keeps saved flows in a dict. Optional latency simulates a network hop."""

    def __init__(self, latency_s: float = 0.0):
        self.latency_s = latency_s
        self._flows: Dict[str, Dict[str, Any]] = {}

    async def save(self, flow_id: str, payload: Dict[str, Any]) -> None:
        if self.latency_s:
            await asyncio.sleep(self.latency_s)

        self._flows[flow_id] = copy.deepcopy(payload)

    async def load(self, flow_id: str) -> Optional[Dict[str, Any]]:
        payload = self._flows.get(flow_id)
        return copy.deepcopy(payload) if payload is not None else None

    async def delete(self, flow_id: str) -> bool:
        return self._flows.pop(flow_id, None) is not None


class JsonFileFlowStorage(FlowStorage):
    """Stores each flow as <flow_id>.json under a directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, flow_id: str) -> Path:
        if not _SAFE_FLOW_ID.match(flow_id):
            raise FlowStorageError(f"Invalid flow ID for file storage: {flow_id!r}")
        return self.directory / f"{flow_id}.json"

    async def save(self, flow_id: str, payload: Dict[str, Any]) -> None:
        path = self._path(flow_id)

        try:
            text = json.dumps(payload, indent=2)
        except (TypeError, ValueError) as e:
            raise FlowStorageError(f"Flow {flow_id} is not JSON serializable: {e}") from e

        def write() -> None:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(text, encoding="utf-8")
            tmp_path.replace(path)

        try:
            await asyncio.to_thread(write)
        except OSError as e:
            raise FlowStorageError(f"Could not write {path}: {e}") from e

    async def load(self, flow_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(flow_id)
        if not path.exists():
            return None

        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return json.loads(text)
        except (OSError, json.JSONDecodeError) as e:
            raise FlowStorageError(f"Could not read {path}: {e}") from e

    async def delete(self, flow_id: str) -> bool:
        path = self._path(flow_id)
        if not path.exists():
            return False

        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FlowStorageError(f"Could not delete {path}: {e}") from e
        return True


def create_storage(config: SaveConfig) -> FlowStorage:
    """Build the storage backend selected in the configuration."""
    if config.backend == StorageBackend.FILE:
        logger.info(f"Using file flow storage: {config.storage_dir}")
        return JsonFileFlowStorage(config.storage_dir)

    return InMemoryFlowStorage(latency_s=config.simulated_latency_s)
