"""Workspace API endpoint tests."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from deskhub.app.api.v1.workspaces import get_orchestrator
from deskhub.app.main import app
from deskhub.core.domain import WorkspaceStatus
from deskhub.core.errors import (
    DuplicateWorkspaceError,
    InvalidWorkspaceStateError,
    WorkspaceNotFoundError,
)
from deskhub.core.interfaces import ContainerInfo
from deskhub.core.models import Workspace
from deskhub.services import WorkspaceOrchestrator, WorkspaceStats

USER = {"X-User-Id": "user-1"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


def _workspace(status: WorkspaceStatus = WorkspaceStatus.ACTIVE, **fields) -> Workspace:
    now = datetime.now(UTC)
    values = {
        "id": "ws-1",
        "user_id": "user-1",
        "name": "Desktop",
        "status": status,
        "created_at": now,
        "updated_at": now,
    }
    values.update(fields)
    return Workspace(**values)


def _stats(workspace: Workspace) -> WorkspaceStats:
    return WorkspaceStats(
        id=workspace.id,
        name=workspace.name,
        status=workspace.status,
        cpu_usage=10.0,
        memory_usage=25.0,
        disk_usage=0.0,
        network_in=1.5,
        network_out=2.0,
        last_accessed_at=None,
        created_at=workspace.created_at,
    )


@pytest.fixture
def mock_orchestrator() -> AsyncMock:
    orchestrator = AsyncMock(spec=WorkspaceOrchestrator)
    orchestrator.get_workspace_by_id = AsyncMock(return_value=_workspace())
    return orchestrator


@pytest_asyncio.fixture
async def client(mock_orchestrator: AsyncMock) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_orchestrator] = lambda: mock_orchestrator
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class TestCreateWorkspace:
    async def test_create(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        mock_orchestrator.create_workspace.return_value = _workspace(
            WorkspaceStatus.PROVISIONING
        )

        response = await client.post(
            "/api/v1/workspaces", json={"name": "Desktop"}, headers=USER
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PROVISIONING"
        assert data["vnc_port"] is None
        mock_orchestrator.create_workspace.assert_called_once_with(
            user_id="user-1", name="Desktop", description=None
        )

    async def test_duplicate(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        mock_orchestrator.create_workspace.side_effect = DuplicateWorkspaceError()

        response = await client.post(
            "/api/v1/workspaces", json={"name": "Desktop"}, headers=USER
        )

        assert response.status_code == 409
        assert response.json() == {
            "error": {
                "code": "DUPLICATE_WORKSPACE",
                "message": "User already has a workspace",
            }
        }

    async def test_requires_user(self, client: AsyncClient):
        response = await client.post("/api/v1/workspaces", json={"name": "Desktop"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_empty_name_rejected(self, client: AsyncClient):
        response = await client.post("/api/v1/workspaces", json={"name": ""}, headers=USER)

        assert response.status_code == 422


class TestGetWorkspace:
    async def test_get_mine(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        mock_orchestrator.get_workspace.return_value = _workspace(
            vnc_port=10000,
            container_id="c-1",
            desktop_url="http://localhost:10000",
        )

        response = await client.get("/api/v1/workspaces/me", headers=USER)

        assert response.status_code == 200
        assert response.json()["desktop_url"] == "http://localhost:10000"
        mock_orchestrator.get_workspace.assert_called_once_with("user-1")

    async def test_trace_id_echoed(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        mock_orchestrator.get_workspace.return_value = _workspace()

        response = await client.get(
            "/api/v1/workspaces/me", headers={**USER, "X-Trace-ID": "trace-123"}
        )

        assert response.headers["X-Trace-ID"] == "trace-123"

    async def test_get_mine_none(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        mock_orchestrator.get_workspace.return_value = None

        response = await client.get("/api/v1/workspaces/me", headers=USER)

        assert response.status_code == 404

    async def test_error_message_exposed(
        self, client: AsyncClient, mock_orchestrator: AsyncMock
    ):
        mock_orchestrator.get_workspace.return_value = _workspace(
            WorkspaceStatus.ERROR, error_message="No available ports"
        )

        response = await client.get("/api/v1/workspaces/me", headers=USER)

        assert response.json()["status"] == "ERROR"
        assert response.json()["error_message"] == "No available ports"


class TestWorkspaceOwnership:
    async def test_stats(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        mock_orchestrator.get_workspace_stats.return_value = _stats(_workspace())

        response = await client.get("/api/v1/workspaces/ws-1/stats", headers=USER)

        assert response.status_code == 200
        assert response.json()["cpu_usage"] == 10.0
        assert response.json()["disk_usage"] == 0.0

    async def test_other_users_workspace_forbidden(
        self, client: AsyncClient, mock_orchestrator: AsyncMock
    ):
        response = await client.get(
            "/api/v1/workspaces/ws-1/stats", headers={"X-User-Id": "user-2"}
        )

        assert response.status_code == 403
        mock_orchestrator.get_workspace_stats.assert_not_called()

    async def test_unknown_workspace(
        self, client: AsyncClient, mock_orchestrator: AsyncMock
    ):
        mock_orchestrator.get_workspace_by_id.return_value = None

        response = await client.delete("/api/v1/workspaces/ws-1", headers=USER)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "WORKSPACE_NOT_FOUND"

    async def test_access(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        response = await client.post("/api/v1/workspaces/ws-1/access", headers=USER)

        assert response.status_code == 204
        mock_orchestrator.update_last_accessed.assert_called_once_with("ws-1")

    async def test_delete(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        response = await client.delete("/api/v1/workspaces/ws-1", headers=USER)

        assert response.status_code == 204
        mock_orchestrator.delete_workspace.assert_called_once_with("ws-1")

    async def test_retry(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        mock_orchestrator.retry_provisioning.return_value = _workspace(
            WorkspaceStatus.PROVISIONING
        )

        response = await client.post("/api/v1/workspaces/ws-1/retry", headers=USER)

        assert response.status_code == 200
        assert response.json()["status"] == "PROVISIONING"

    async def test_retry_invalid_state(
        self, client: AsyncClient, mock_orchestrator: AsyncMock
    ):
        mock_orchestrator.retry_provisioning.side_effect = InvalidWorkspaceStateError()

        response = await client.post("/api/v1/workspaces/ws-1/retry", headers=USER)

        assert response.status_code == 409


class TestAdminEndpoints:
    async def test_requires_admin_role(self, client: AsyncClient):
        response = await client.get("/api/v1/admin/workspaces/stats", headers=USER)

        assert response.status_code == 403

    async def test_all_stats(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        mock_orchestrator.get_all_workspaces_stats.return_value = [_stats(_workspace())]

        response = await client.get("/api/v1/admin/workspaces/stats", headers=ADMIN)

        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == ["ws-1"]

    async def test_update_status(self, client: AsyncClient, mock_orchestrator: AsyncMock):
        response = await client.put(
            "/api/v1/admin/workspaces/ws-1/status",
            json={"status": "SUSPENDED"},
            headers=ADMIN,
        )

        assert response.status_code == 204
        mock_orchestrator.update_workspace_status.assert_called_once_with(
            "ws-1", WorkspaceStatus.SUSPENDED
        )

    async def test_update_status_unknown(
        self, client: AsyncClient, mock_orchestrator: AsyncMock
    ):
        mock_orchestrator.update_workspace_status.side_effect = WorkspaceNotFoundError()

        response = await client.put(
            "/api/v1/admin/workspaces/ws-1/status",
            json={"status": "ERROR"},
            headers=ADMIN,
        )

        assert response.status_code == 404

    async def test_update_status_invalid_value(self, client: AsyncClient):
        response = await client.put(
            "/api/v1/admin/workspaces/ws-1/status",
            json={"status": "RUNNING"},
            headers=ADMIN,
        )

        assert response.status_code == 422

    async def test_list_containers(
        self, client: AsyncClient, mock_orchestrator: AsyncMock
    ):
        mock_orchestrator.list_all_workspace_containers.return_value = [
            ContainerInfo(
                container_id="c-1",
                workspace_id="ws-1",
                name="deskhub-workspace-ws-1",
                state="running",
                status="Up 2 hours",
            )
        ]

        response = await client.get("/api/v1/admin/containers", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()[0]["workspace_id"] == "ws-1"
