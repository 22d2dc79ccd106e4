"""Unit tests for flow data models."""

import pytest

from chatflow.config import NodeKind
from chatflow.exceptions import UnknownNodeKindError
from chatflow.models import ConnectRequest, FlowLink, FlowNode, GraphSnapshot, Position


class TestFlowNode:
    """Tests for FlowNode."""

    def test_node_to_dict(self):
        """Test the persisted node shape."""
        node = FlowNode(
            id="message-1",
            kind=NodeKind.MESSAGE,
            position=Position(1.5, 2),
            data={"text": "Hi"},
        )

        assert node.to_dict() == {
            "id": "message-1",
            "type": "message",
            "position": {"x": 1.5, "y": 2},
            "data": {"text": "Hi"},
        }

    def test_node_data_is_read_only(self):
        """Test node content cannot be changed in place."""
        source = {"text": "Hi"}
        node = FlowNode(id="n", kind=NodeKind.MESSAGE, position=Position(), data=source)

        source["text"] = "changed"

        assert node.text == "Hi"
        with pytest.raises(TypeError):
            node.data["text"] = "changed"
        assert isinstance(node.to_dict()["data"], dict)

    def test_node_is_frozen(self):
        """Test nodes cannot be reassigned in place."""
        node = FlowNode(id="n", kind=NodeKind.MESSAGE, position=Position(), data={})

        with pytest.raises(AttributeError):
            node.kind = NodeKind.MESSAGE

    def test_unknown_kind_from_dict(self):
        """Test loading a node of an unknown kind."""
        with pytest.raises(UnknownNodeKindError):
            FlowNode.from_dict({"id": "n", "type": "condition"})

    def test_canvas_text_node_type(self):
        """Test nodes saved by the browser canvas load as message nodes."""
        node = FlowNode.from_dict({
            "id": "node_1",
            "type": "textNode",
            "position": {"x": 250, "y": 150},
            "data": {"text": "Hello"},
        })

        assert node.kind == NodeKind.MESSAGE
        assert node.text == "Hello"
        assert node.to_dict()["type"] == "message"

    def test_missing_position_defaults_to_origin(self):
        """Test nodes without a stored position load at the origin."""
        node = FlowNode.from_dict({"id": "n", "type": "message"})

        assert node.position == Position(0.0, 0.0)
        assert node.data == {}


class TestFlowLink:
    """Tests for FlowLink."""

    def test_link_to_dict(self):
        """Test the persisted link shape."""
        link = FlowLink("l1", "a", "source", "b", "target")

        assert link.to_dict() == {
            "id": "l1",
            "source": "a",
            "sourceHandle": "source",
            "target": "b",
            "targetHandle": "target",
        }
        assert link.source_key == ("a", "source")
        assert link.touches("a") and link.touches("b")
        assert not link.touches("c")


class TestGraphSnapshot:
    """Tests for GraphSnapshot queries."""

    def test_queries(self):
        """Test node and link lookups."""
        snapshot = GraphSnapshot(
            nodes=(
                FlowNode("a", NodeKind.MESSAGE, Position(), {}),
                FlowNode("b", NodeKind.MESSAGE, Position(), {}),
            ),
            links=(FlowLink("l1", "a", "source", "b", "target"),),
        )

        assert snapshot.node_ids == ["a", "b"]
        assert snapshot.get_node("b").id == "b"
        assert snapshot.get_node("zzz") is None
        assert snapshot.get_link("l1").target == "b"
        assert [l.id for l in snapshot.incoming_links("b")] == ["l1"]
        assert [l.id for l in snapshot.outgoing_links("a")] == ["l1"]
        assert snapshot.outgoing_links("b") == []

    def test_replace_returns_new_snapshot(self):
        """Test replacing collections leaves the original untouched."""
        snapshot = GraphSnapshot()
        node = FlowNode("a", NodeKind.MESSAGE, Position(), {})

        updated = snapshot.replace(nodes=[node])

        assert snapshot.nodes == ()
        assert updated.nodes == (node,)
        assert updated.links == ()


class TestConnectRequest:
    """Tests for the connect request model."""

    def test_canvas_field_names(self):
        """Test camelCase handle names from the canvas are accepted."""
        request = ConnectRequest.model_validate(
            {"source": "a", "sourceHandle": "source", "target": "b", "targetHandle": "target"}
        )

        assert request.source_handle == "source"
        assert request.target_handle == "target"

    def test_default_handles(self):
        """Test handles default to the message node ports."""
        request = ConnectRequest(source="a", target="b")

        assert request.source_handle == "source"
        assert request.target_handle == "target"
