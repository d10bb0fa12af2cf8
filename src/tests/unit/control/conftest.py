"""Fixtures for control loop unit tests."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from deskhub.core.domain import WorkspaceStatus
from deskhub.core.interfaces import ContainerController
from deskhub.core.models import Workspace
from deskhub.infra.postgresql import create_engine, create_session_factory, create_tables


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine: AsyncEngine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'sweeper.db'}")
    await create_tables(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def mock_containers() -> AsyncMock:
    containers = AsyncMock(spec=ContainerController)
    containers.list_workspace_containers = AsyncMock(return_value=[])
    containers.remove_container = AsyncMock()
    return containers


@pytest.fixture
def insert_workspace(session_factory: async_sessionmaker[AsyncSession]):
    async def _insert(
        status: WorkspaceStatus, updated_at: datetime | None = None, **fields
    ) -> Workspace:
        now = datetime.now(UTC)
        workspace = Workspace(
            id=fields.pop("id", str(uuid4())),
            user_id=f"user-{uuid4().hex[:8]}",
            name="Desktop",
            status=status,
            created_at=now,
            updated_at=updated_at or now,
            **fields,
        )
        async with session_factory() as db:
            db.add(workspace)
            await db.commit()
        return workspace

    return _insert
