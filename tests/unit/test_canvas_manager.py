"""Unit tests for the canvas manager."""

import asyncio

import pytest

from chatflow.canvas.manager import CanvasManager
from chatflow.exceptions import FlowBuilderError, GraphIntegrityError
from chatflow.save import JsonFileFlowStorage


class TestCanvasManager:
    """Tests for CanvasManager."""

    def test_create_session(self, manager):
        """Test opening a canvas."""
        session = manager.create_session()

        assert session.flow_id
        assert session.store.snapshot.nodes == ()
        assert manager.get_session(session.flow_id) is session

    def test_sessions_are_independent(self, manager):
        """Test canvases do not share nodes."""
        first = manager.create_session()
        second = manager.create_session()

        first.store.add_node()

        assert second.store.snapshot.nodes == ()
        assert len(manager.list_sessions()) == 2

    def test_duplicate_flow_id(self, manager):
        """Test an open flow id cannot be reused."""
        manager.create_session("flow-1")

        with pytest.raises(FlowBuilderError):
            manager.create_session("flow-1")

    def test_close_session(self, manager):
        """Test closing a canvas."""
        session = manager.create_session()

        assert manager.close_session(session.flow_id) is True
        assert manager.close_session(session.flow_id) is False
        assert manager.get_session(session.flow_id) is None

    def test_validate(self, manager):
        """Test validating an open canvas."""
        session = manager.create_session()
        session.store.add_node()
        session.store.add_node()

        assert manager.validate(session.flow_id).valid is False
        assert manager.validate("missing") is None

    @pytest.mark.asyncio
    async def test_open_saved(self, manager):
        """Test a saved canvas reopens with the same nodes and links."""
        session = manager.create_session("flow-1")
        a = session.store.add_node(data={"text": "Hi"})
        b = session.store.add_node()
        session.store.connect(a.id, "source", b.id, "target")
        assert (await session.save_workflow.save("flow-1")).saved

        manager.close_session("flow-1")
        reopened = await manager.open_saved("flow-1")

        assert reopened is not session
        assert reopened.store.snapshot == session.store.snapshot

    @pytest.mark.asyncio
    async def test_open_saved_returns_open_session(self, manager):
        """Test reopening an open flow returns the live session."""
        session = manager.create_session("flow-1")

        assert await manager.open_saved("flow-1") is session

    @pytest.mark.asyncio
    async def test_open_unknown(self, manager):
        """Test reopening a flow that was never saved."""
        assert await manager.open_saved("missing") is None

    @pytest.mark.asyncio
    async def test_open_corrupt_saved_flow(self, manager, storage):
        """Test a stored flow with dangling links is refused."""
        await storage.save("broken", {
            "nodes": [{"id": "a", "type": "message", "position": {"x": 0, "y": 0}, "data": {}}],
            "links": [{"id": "l1", "source": "a", "target": "ghost"}],
        })

        with pytest.raises(GraphIntegrityError):
            await manager.open_saved("broken")

    @pytest.mark.asyncio
    async def test_concurrent_reopen_shares_session(self, settings, registry, tmp_path):
        """Test two concurrent reopens of a saved flow get the same session."""
        storage = JsonFileFlowStorage(str(tmp_path))
        await storage.save("flow-1", {
            "nodes": [{"id": "a", "type": "message", "position": {"x": 0, "y": 0}, "data": {}}],
            "links": [],
            "timestamp": "2024-01-01T00:00:00+00:00",
        })
        manager = CanvasManager(settings=settings, storage=storage, registry=registry)

        first, second = await asyncio.gather(
            manager.open_saved("flow-1"),
            manager.open_saved("flow-1"),
        )

        assert first is second
        assert len(manager.list_sessions()) == 1
        assert first.store.snapshot.node_ids == ["a"]
