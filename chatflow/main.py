"""
Chatbot Flow Builder Service.

HTTP and WebSocket surface for the flow editor canvas.

API Endpoints:
- Flows: open, read and close canvases
- Nodes/Links: edit intents against a canvas
- Validation & Save: save eligibility and persistence
- Nodes catalog: available node kinds
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .canvas.manager import CanvasManager, FlowSession
from .config import SaveStatus, Settings, get_settings
from .exceptions import FlowBuilderError, UnknownNodeKindError
from .models import (
    AddNodeRequest,
    ConnectRequest,
    FlowResponse,
    GraphSnapshot,
    NodeListResponse,
    Position,
    PositionModel,
    SaveFlowResponse,
    UpdateNodeRequest,
    ValidateFlowResponse,
)
from .nodes import get_node_registry

logger = logging.getLogger(__name__)

# Service metadata
SERVICE_NAME = "chatflow"
START_TIME = time.time()


def configure_logging(settings: Settings) -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_canvas_manager(request: Request) -> CanvasManager:
    return request.app.state.canvas_manager


async def get_session(
    flow_id: str,
    manager: CanvasManager = Depends(get_canvas_manager),
) -> FlowSession:
    """Resolve an open flow, reopening it from storage when needed."""
    try:
        session = await manager.open_saved(flow_id)
    except FlowBuilderError as e:
        logger.error(f"Could not reopen flow {flow_id}: {e}")
        raise HTTPException(status_code=409, detail="Stored flow is corrupt")

    if not session:
        raise HTTPException(status_code=404, detail="Flow not found")
    return session


def flow_response(flow_id: str, snapshot: GraphSnapshot) -> Dict[str, Any]:
    return {"flow_id": flow_id, **snapshot.to_dict()}


def create_app(
    settings: Optional[Settings] = None,
    manager: Optional[CanvasManager] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings
        manager: Canvas manager (built from settings when omitted)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {SERVICE_NAME} v{__version__}")
        yield
        logger.info(f"Shutting down {SERVICE_NAME}")

    app = FastAPI(
        title="Chatbot Flow Builder",
        description="Flow graph model and save validation for a chatbot flow editor",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.canvas_manager = manager or CanvasManager(settings=settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # =========================================================================
    # Health & Info
    # =========================================================================

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "uptime_seconds": time.time() - START_TIME,
        }

    @app.get("/info")
    async def get_info(
        manager: CanvasManager = Depends(get_canvas_manager),
    ) -> Dict[str, Any]:
        """Get service information."""
        return {
            "service": SERVICE_NAME,
            "version": __version__,
            "node_kinds": len(get_node_registry()),
            "open_flows": len(manager.list_sessions()),
            "snap_grid": settings.canvas.snap_grid,
            "allow_self_loops": settings.canvas.allow_self_loops,
        }

    @app.get("/nodes", response_model=NodeListResponse)
    async def list_nodes() -> Dict[str, Any]:
        """List available node kinds."""
        return {"nodes": get_node_registry().to_catalog()}

    # =========================================================================
    # Flows API
    # =========================================================================

    @app.post("/flows", response_model=FlowResponse, status_code=201)
    async def create_flow(
        manager: CanvasManager = Depends(get_canvas_manager),
    ) -> Dict[str, Any]:
        """Open a new empty canvas."""
        session = manager.create_session()
        return flow_response(session.flow_id, session.store.snapshot)

    @app.get("/flows/{flow_id}", response_model=FlowResponse)
    async def get_flow(session: FlowSession = Depends(get_session)) -> Dict[str, Any]:
        """Get the current snapshot of a flow."""
        return flow_response(session.flow_id, session.store.snapshot)

    @app.delete("/flows/{flow_id}")
    async def delete_flow(
        flow_id: str,
        manager: CanvasManager = Depends(get_canvas_manager),
    ) -> Dict[str, Any]:
        """Close a flow and delete its saved copy."""
        closed = manager.close_session(flow_id)
        deleted = await manager.storage.delete(flow_id)

        if not closed and not deleted:
            raise HTTPException(status_code=404, detail="Flow not found")

        return {"deleted": True, "flow_id": flow_id}

    # =========================================================================
    # Node Intents
    # =========================================================================

    @app.post("/flows/{flow_id}/nodes", status_code=201)
    async def add_node(
        request: AddNodeRequest,
        session: FlowSession = Depends(get_session),
    ) -> Dict[str, Any]:
        """Add a node to the canvas."""
        position = (
            Position(request.position.x, request.position.y)
            if request.position
            else None
        )

        try:
            node = session.store.add_node(request.kind, position, request.data)
        except UnknownNodeKindError as e:
            raise HTTPException(status_code=422, detail=str(e))

        return node.to_dict()

    @app.patch("/flows/{flow_id}/nodes/{node_id}")
    async def update_node(
        node_id: str,
        request: UpdateNodeRequest,
        session: FlowSession = Depends(get_session),
    ) -> Dict[str, Any]:
        """Merge content into a node."""
        node = session.store.update_node_content(node_id, request.data)

        if not node:
            raise HTTPException(status_code=404, detail="Node not found")

        return node.to_dict()

    @app.put("/flows/{flow_id}/nodes/{node_id}/position")
    async def move_node(
        node_id: str,
        request: PositionModel,
        session: FlowSession = Depends(get_session),
    ) -> Dict[str, Any]:
        """Record a node's position after a drag."""
        node = session.store.move_node(node_id, Position(request.x, request.y))

        if not node:
            raise HTTPException(status_code=404, detail="Node not found")

        return node.to_dict()

    @app.delete("/flows/{flow_id}/nodes/{node_id}")
    async def remove_node(
        node_id: str,
        session: FlowSession = Depends(get_session),
    ) -> Dict[str, Any]:
        """Remove a node and its links."""
        if not session.store.remove_node(node_id):
            raise HTTPException(status_code=404, detail="Node not found")

        return {"deleted": True, "node_id": node_id}

    # =========================================================================
    # Link Intents
    # =========================================================================

    @app.post("/flows/{flow_id}/links", status_code=201)
    async def connect(
        request: ConnectRequest,
        session: FlowSession = Depends(get_session),
    ) -> Dict[str, Any]:
        """Draw a link, replacing any link on the same source handle."""
        rejection = session.store.check_connection(
            request.source,
            request.source_handle,
            request.target,
            request.target_handle,
        )
        if rejection:
            raise HTTPException(status_code=422, detail=f"Connection rejected: {rejection}")

        link = session.store.connect(
            request.source,
            request.source_handle,
            request.target,
            request.target_handle,
        )
        return link.to_dict()

    @app.delete("/flows/{flow_id}/links/{link_id}")
    async def remove_link(
        link_id: str,
        session: FlowSession = Depends(get_session),
    ) -> Dict[str, Any]:
        """Remove a link."""
        if not session.store.remove_link(link_id):
            raise HTTPException(status_code=404, detail="Link not found")

        return {"deleted": True, "link_id": link_id}

    # =========================================================================
    # Validation & Save
    # =========================================================================

    @app.post("/flows/{flow_id}/validate", response_model=ValidateFlowResponse)
    async def validate_flow(
        session: FlowSession = Depends(get_session),
        manager: CanvasManager = Depends(get_canvas_manager),
    ) -> Dict[str, Any]:
        """Check whether the flow may be saved."""
        return manager.validator.validate(session.store.snapshot).to_dict()

    @app.post("/flows/{flow_id}/save", response_model=SaveFlowResponse)
    async def save_flow(session: FlowSession = Depends(get_session)) -> Dict[str, Any]:
        """Validate and persist the flow."""
        result = await session.save_workflow.save(session.flow_id)

        if result.status == SaveStatus.BUSY:
            raise HTTPException(status_code=409, detail=result.message)

        if result.validation is not None and not result.validation.valid:
            raise HTTPException(status_code=422, detail=result.message)

        if not result.saved:
            raise HTTPException(status_code=503, detail=result.message)

        return {"status": result.status.value, "flow": result.payload}

    # =========================================================================
    # WebSocket Change Notifications
    # =========================================================================

    @app.websocket("/ws/flows/{flow_id}")
    async def websocket_flow(websocket: WebSocket, flow_id: str):
        """
        Stream canvas changes and accept edit intents.

        Protocol:
        - Server sends: {"type": "snapshot", "flow_id": ..., "nodes": [...], "links": [...]}
          on connect and after every change
        - Client sends: {"action": "connect", "payload": {...}}
        - Server replies to rejected intents with {"type": "error", "detail": ...}
        """
        manager: CanvasManager = websocket.app.state.canvas_manager
        try:
            session = await manager.open_saved(flow_id)
        except FlowBuilderError as e:
            logger.error(f"Could not reopen flow {flow_id}: {e}")
            await websocket.close(code=4409)
            return

        if not session:
            await websocket.close(code=4404)
            return

        await websocket.accept()

        outbox: asyncio.Queue = asyncio.Queue()

        def on_change(snapshot: GraphSnapshot) -> None:
            outbox.put_nowait({"type": "snapshot", **flow_response(flow_id, snapshot)})

        unsubscribe = session.store.subscribe(on_change)
        logger.info(f"WebSocket connected to flow: {flow_id}")

        async def receive_intents() -> None:
            while True:
                try:
                    message = await websocket.receive_json()
                    if not isinstance(message, dict):
                        raise FlowBuilderError("Intent must be a JSON object")
                    apply_intent(
                        session,
                        message.get("action", ""),
                        message.get("payload") or {},
                    )
                except (FlowBuilderError, KeyError, TypeError, ValueError) as e:
                    outbox.put_nowait({"type": "error", "detail": str(e)})

        receiver = asyncio.create_task(receive_intents())
        try:
            await websocket.send_json(
                {"type": "snapshot", **flow_response(flow_id, session.store.snapshot)}
            )

            while True:
                sender = asyncio.create_task(outbox.get())
                done, _ = await asyncio.wait(
                    {sender, receiver},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if receiver in done:
                    sender.cancel()
                    receiver.result()
                    break

                await websocket.send_json(sender.result())

        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected from flow: {flow_id}")

        finally:
            unsubscribe()
            receiver.cancel()

    return app


def apply_intent(session: FlowSession, action: str, payload: Dict[str, Any]) -> None:
    """
    Apply an edit intent received over the WebSocket.

    Raises:
        FlowBuilderError: for unknown actions or rejected intents
    """
    store = session.store

    if action == "add_node":
        position = payload.get("position")
        store.add_node(
            payload.get("kind", "message"),
            Position.from_dict(position) if position else None,
            payload.get("data"),
        )
    elif action == "update_node":
        if not store.update_node_content(payload["node_id"], payload.get("data") or {}):
            raise FlowBuilderError(f"Node not found: {payload['node_id']}")
    elif action == "move_node":
        if not store.move_node(payload["node_id"], Position.from_dict(payload.get("position"))):
            raise FlowBuilderError(f"Node not found: {payload['node_id']}")
    elif action == "remove_node":
        if not store.remove_node(payload["node_id"]):
            raise FlowBuilderError(f"Node not found: {payload['node_id']}")
    elif action == "connect":
        args = (
            payload["source"],
            payload.get("sourceHandle", "source"),
            payload["target"],
            payload.get("targetHandle", "target"),
        )
        rejection = store.check_connection(*args)
        if rejection:
            raise FlowBuilderError(f"Connection rejected: {rejection}")
        store.connect(*args)
    elif action == "remove_link":
        if not store.remove_link(payload["link_id"]):
            raise FlowBuilderError(f"Link not found: {payload['link_id']}")
    else:
        raise FlowBuilderError(f"Unknown action: {action}")


app = create_app()


# =============================================================================
# Main
# =============================================================================


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "chatflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
