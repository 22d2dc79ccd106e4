"""Shared pytest fixtures for testing."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from chatflow.canvas import FlowValidator, GraphStore
from chatflow.canvas.manager import CanvasManager
from chatflow.config import CanvasConfig, SaveConfig, Settings
from chatflow.nodes import NodeRegistry
from chatflow.save import InMemoryFlowStorage, SaveWorkflow


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults, independent of the environment."""
    return Settings(
        canvas=CanvasConfig(allow_self_loops=True, check_invariants=True),
        save=SaveConfig(simulated_latency_s=0.0, timeout_s=1.0),
    )


@pytest.fixture
def registry() -> NodeRegistry:
    return NodeRegistry()


@pytest.fixture
def store(registry, settings) -> GraphStore:
    """Empty graph store."""
    return GraphStore(registry=registry, config=settings.canvas)


@pytest.fixture
def validator() -> FlowValidator:
    return FlowValidator()


@pytest.fixture
def storage() -> InMemoryFlowStorage:
    return InMemoryFlowStorage()


@pytest.fixture
def save_workflow(store, storage, validator, settings) -> SaveWorkflow:
    return SaveWorkflow(
        store=store,
        storage=storage,
        validator=validator,
        config=settings.save,
    )


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def manager(settings, storage, registry) -> CanvasManager:
    return CanvasManager(settings=settings, storage=storage, registry=registry)


@pytest.fixture
def app(settings, manager) -> FastAPI:
    """Create test FastAPI application."""
    from chatflow.main import create_app

    return create_app(settings=settings, manager=manager)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
