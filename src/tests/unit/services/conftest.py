"""Fixtures for service unit tests.

Services run against a file-backed SQLite database (aiosqlite) so that
every session sees the same data.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from deskhub.core.domain import WorkspaceStatus
from deskhub.core.interfaces import ContainerController
from deskhub.core.models import Workspace
from deskhub.core.stats import ContainerStats
from deskhub.infra.postgresql import create_engine, create_session_factory, create_tables
from deskhub.services import PortAllocator, WorkspaceOrchestrator

PORT_RANGE_START = 10000
PORT_RANGE_END = 10003

InsertWorkspace = Callable[..., Awaitable[Workspace]]


@pytest.fixture
def port_range() -> range:
    return range(PORT_RANGE_START, PORT_RANGE_END)


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'deskhub.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


@pytest.fixture
def mock_containers() -> AsyncMock:
    """ContainerController mock; every engine call succeeds."""
    containers = AsyncMock(spec=ContainerController)
    containers.create_workspace_container = AsyncMock(return_value="container-1")
    containers.stop_container = AsyncMock()
    containers.remove_container = AsyncMock()
    containers.list_workspace_containers = AsyncMock(return_value=[])
    containers.get_container_stats = AsyncMock(return_value=ContainerStats.zero())
    return containers


@pytest.fixture
def port_allocator(session_factory: async_sessionmaker[AsyncSession]) -> PortAllocator:
    return PortAllocator(session_factory, PORT_RANGE_START, PORT_RANGE_END)


@pytest_asyncio.fixture
async def orchestrator(
    session_factory: async_sessionmaker[AsyncSession],
    mock_containers: AsyncMock,
    port_allocator: PortAllocator,
) -> AsyncGenerator[WorkspaceOrchestrator, None]:
    orchestrator = WorkspaceOrchestrator(session_factory, mock_containers, ports=port_allocator)
    yield orchestrator
    await orchestrator.close()


@pytest.fixture
def insert_workspace(session_factory: async_sessionmaker[AsyncSession]) -> InsertWorkspace:
    """Insert a workspace row directly, bypassing provisioning."""

    async def _insert(
        status: WorkspaceStatus = WorkspaceStatus.PROVISIONING,
        updated_at: datetime | None = None,
        **fields,
    ) -> Workspace:
        now = datetime.now(UTC)
        fields.setdefault("user_id", f"user-{uuid4().hex[:8]}")
        fields.setdefault("name", "Desktop")
        workspace = Workspace(
            id=str(uuid4()),
            status=status,
            created_at=now,
            updated_at=updated_at or now,
            **fields,
        )
        async with session_factory() as db:
            db.add(workspace)
            await db.commit()
            await db.refresh(workspace)
        return workspace

    return _insert
