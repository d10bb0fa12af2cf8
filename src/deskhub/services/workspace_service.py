"""Workspace orchestration: record lifecycle driven by container outcomes.

Lifecycle:
    create_workspace() persists PROVISIONING and returns immediately.
    A detached task then allocates a port, creates+starts the container and
    moves the record to ACTIVE, or to ERROR on any failure (port released).

Cancellation:
    Deleting a workspace while provisioning is in flight removes the record.
    The provisioning task finds the record gone (or no longer PROVISIONING)
    when it tries to go ACTIVE and tears down the container it just started.
"""

import asyncio
import logging
import time
from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deskhub.app.config import get_settings
from deskhub.app.logging import workspace_context
from deskhub.app.metrics.collector import (
    PROVISIONING_DURATION,
    PROVISIONING_IN_FLIGHT,
    PROVISIONING_TOTAL,
)
from deskhub.core.domain import RETRYABLE_STATUSES, WorkspaceStatus
from deskhub.core.errors import (
    DuplicateWorkspaceError,
    InvalidWorkspaceStateError,
    WorkspaceNotFoundError,
)
from deskhub.core.interfaces import ContainerController, ContainerInfo
from deskhub.core.logging_schema import Component, LogEvent
from deskhub.core.models import Workspace
from deskhub.core.stats import ContainerStats
from deskhub.services.locks import WorkspaceLocks
from deskhub.services.port_allocator import PortAllocator

logger = logging.getLogger(__name__)


class WorkspaceStats(BaseModel):
    """Resource counters merged with the workspace's static fields."""

    id: str
    name: str
    status: WorkspaceStatus
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    network_in: float
    network_out: float
    last_accessed_at: datetime | None
    created_at: datetime


def _persisted_stats(workspace: Workspace) -> ContainerStats:
    """Last observed counters, null reported as 0."""
    return ContainerStats(
        cpu_usage=workspace.cpu_usage or 0.0,
        memory_usage=workspace.memory_usage or 0.0,
        disk_usage=workspace.disk_usage or 0.0,
        network_in=workspace.network_in or 0.0,
        network_out=workspace.network_out or 0.0,
    )


class WorkspaceOrchestrator:
    """Owns the workspace lifecycle against a container controller.

    Args:
        session_factory: Factory for fresh DB sessions (one per operation)
        containers: Container lifecycle manager
        ports: VNC port allocator (defaults to the configured range)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        containers: ContainerController,
        ports: PortAllocator | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._containers = containers
        self._ports = ports or PortAllocator(session_factory)
        self._locks = WorkspaceLocks()
        self._tasks: set[asyncio.Task] = set()
        self._desktop_host = get_settings().port.desktop_host

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_workspace(self, user_id: str) -> Workspace | None:
        """Get the workspace owned by a user."""
        async with self._session_factory() as db:
            result = await db.execute(select(Workspace).where(Workspace.user_id == user_id))
            return result.scalar_one_or_none()

    async def get_workspace_by_id(self, workspace_id: str) -> Workspace | None:
        async with self._session_factory() as db:
            return await db.get(Workspace, workspace_id)

    async def list_all_workspace_containers(self) -> list[ContainerInfo]:
        """Administrative enumeration of workspace containers (best effort)."""
        return await self._containers.list_workspace_containers()

    # =========================================================================
    # Create / provision
    # =========================================================================

    async def create_workspace(
        self,
        user_id: str,
        name: str,
        description: str | None = None,
    ) -> Workspace:
        """Persist a PROVISIONING workspace and start provisioning in the background.

        Returns:
            The persisted record (status PROVISIONING, no container yet)

        Raises:
            DuplicateWorkspaceError: User already owns a workspace (any status)
        """
        now = datetime.now(UTC)
        workspace = Workspace(
            id=str(uuid4()),
            user_id=user_id,
            name=name,
            description=description,
            status=WorkspaceStatus.PROVISIONING,
            created_at=now,
            updated_at=now,
        )

        async with self._session_factory() as db:
            existing = await db.execute(select(Workspace.id).where(Workspace.user_id == user_id))
            if existing.first() is not None:
                raise DuplicateWorkspaceError()

            db.add(workspace)
            try:
                await db.commit()
            except IntegrityError as e:
                # Concurrent create for the same user won the unique index
                await db.rollback()
                raise DuplicateWorkspaceError() from e
            await db.refresh(workspace)

        logger.info(
            "Workspace created",
            extra={
                "event": LogEvent.WORKSPACE_CREATED,
                "ws_id": workspace.id,
                "user_id": user_id,
            },
        )
        self._schedule_provisioning(workspace.id)
        return workspace

    async def retry_provisioning(self, workspace_id: str) -> Workspace:
        """Manually re-run provisioning for a workspace in ERROR.

        Raises:
            WorkspaceNotFoundError: Unknown workspace
            InvalidWorkspaceStateError: Workspace is not in ERROR
        """
        async with self._locks.get(workspace_id):
            async with self._session_factory() as db:
                workspace = await db.get(Workspace, workspace_id)
                if workspace is None:
                    raise WorkspaceNotFoundError()
                if workspace.status not in RETRYABLE_STATUSES:
                    raise InvalidWorkspaceStateError(
                        f"Cannot retry provisioning from {workspace.status}"
                    )

                workspace.status = WorkspaceStatus.PROVISIONING
                workspace.container_id = None
                workspace.desktop_url = None
                workspace.error_message = None
                workspace.updated_at = datetime.now(UTC)
                await db.commit()
                await db.refresh(workspace)

        self._schedule_provisioning(workspace_id)
        return workspace

    def _schedule_provisioning(self, workspace_id: str) -> None:
        task = asyncio.create_task(
            self._provision(workspace_id), name=f"provision-{workspace_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _provision(self, workspace_id: str) -> None:
        with workspace_context(workspace_id):
            await self._run_provisioning(workspace_id)

    async def _run_provisioning(self, workspace_id: str) -> None:
        """Allocate port, create+start container, mark ACTIVE or ERROR.

        Never raises (except cancellation): failures end in ERROR.
        """
        PROVISIONING_IN_FLIGHT.inc()
        start = time.monotonic()
        container_id: str | None = None
        outcome = "error"
        logger.info(
            "Provisioning started",
            extra={
                "event": LogEvent.PROVISIONING_STARTED,
                "component": Component.PROVISIONER,
                "ws_id": workspace_id,
            },
        )

        try:
            vnc_port = await self._ports.allocate(workspace_id)
            container_id = await self._containers.create_workspace_container(
                workspace_id, vnc_port
            )

            if not await self._mark_active(workspace_id, container_id, vnc_port):
                outcome = "cancelled"
                await self._teardown_cancelled(workspace_id, container_id)
                return

            outcome = "success"
            logger.info(
                "Workspace %s provisioned successfully",
                workspace_id,
                extra={
                    "event": LogEvent.PROVISIONING_SUCCESS,
                    "component": Component.PROVISIONER,
                    "ws_id": workspace_id,
                    "container": container_id,
                    "vnc_port": vnc_port,
                },
            )
        except WorkspaceNotFoundError:
            # Deleted before a port could be reserved
            outcome = "cancelled"
            logger.info(
                "Provisioning cancelled, workspace %s deleted",
                workspace_id,
                extra={"event": LogEvent.PROVISIONING_CANCELLED, "ws_id": workspace_id},
            )
        except Exception as e:
            leftover = None
            if container_id is not None:
                if not await self._teardown_cancelled(workspace_id, container_id):
                    leftover = container_id
            await self._fail_provisioning(workspace_id, e, leftover_container=leftover)
        finally:
            PROVISIONING_IN_FLIGHT.dec()
            PROVISIONING_TOTAL.labels(result=outcome).inc()
            PROVISIONING_DURATION.labels(result=outcome).observe(time.monotonic() - start)

    async def _mark_active(self, workspace_id: str, container_id: str, vnc_port: int) -> bool:
        """Compare-and-swap PROVISIONING -> ACTIVE.

        Returns:
            False if the record was deleted or left PROVISIONING meanwhile
        """
        async with self._locks.get(workspace_id):
            async with self._session_factory() as db:
                result = await db.execute(
                    update(Workspace)
                    .where(
                        Workspace.id == workspace_id,
                        Workspace.status == WorkspaceStatus.PROVISIONING,
                    )
                    .values(
                        container_id=container_id,
                        vnc_port=vnc_port,
                        desktop_url=f"http://{self._desktop_host}:{vnc_port}",
                        status=WorkspaceStatus.ACTIVE,
                        error_message=None,
                        updated_at=datetime.now(UTC),
                    )
                )
                await db.commit()
        return result.rowcount > 0

    async def _teardown_cancelled(self, workspace_id: str, container_id: str) -> bool:
        """Remove a container whose workspace can no longer own it.

        Returns:
            True if the container is gone
        """
        logger.warning(
            "Tearing down container %s for workspace %s",
            container_id,
            workspace_id,
            extra={
                "event": LogEvent.PROVISIONING_CANCELLED,
                "ws_id": workspace_id,
                "container": container_id,
            },
        )
        try:
            await self._containers.remove_container(container_id)
        except Exception as e:
            logger.error(
                "Failed to tear down container %s: %s",
                container_id,
                e,
                extra={
                    "event": LogEvent.CONTAINER_OPERATION_FAILED,
                    "ws_id": workspace_id,
                    "container": container_id,
                },
            )
            return False
        return True

    async def _fail_provisioning(
        self,
        workspace_id: str,
        exc: Exception,
        leftover_container: str | None = None,
    ) -> None:
        """Mark ERROR and release the port. No retry.

        A container that could not be removed still binds the port, so the
        record keeps both port and container id; deleting the workspace
        cleans them up.
        """
        values: dict = {
            "status": WorkspaceStatus.ERROR,
            "container_id": leftover_container,
            "desktop_url": None,
            "error_message": str(exc),
            "updated_at": datetime.now(UTC),
        }
        if leftover_container is None:
            values["vnc_port"] = None
        else:
            logger.error(
                "Workspace %s keeps its port: container %s is still present",
                workspace_id,
                leftover_container,
                extra={
                    "event": LogEvent.CONTAINER_OPERATION_FAILED,
                    "ws_id": workspace_id,
                    "container": leftover_container,
                },
            )

        logger.error(
            "Failed to provision workspace %s: %s",
            workspace_id,
            exc,
            extra={
                "event": LogEvent.PROVISIONING_FAILED,
                "component": Component.PROVISIONER,
                "ws_id": workspace_id,
                "error_type": type(exc).__name__,
            },
        )
        try:
            async with self._locks.get(workspace_id):
                async with self._session_factory() as db:
                    await db.execute(
                        update(Workspace).where(Workspace.id == workspace_id).values(**values)
                    )
                    await db.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to mark workspace %s as ERROR: %s",
                workspace_id,
                e,
                extra={"event": LogEvent.PROVISIONING_FAILED, "ws_id": workspace_id},
            )

    # =========================================================================
    # Stats
    # =========================================================================

    async def get_workspace_stats(self, workspace_id: str) -> WorkspaceStats | None:
        """Current resource counters for a workspace.

        ACTIVE workspaces with a container are sampled from the engine and the
        sample is persisted; a failed sample becomes a zero snapshot. Any other
        status returns the persisted counters without touching the engine.
        """
        workspace = await self.get_workspace_by_id(workspace_id)
        if workspace is None:
            return None

        stats = _persisted_stats(workspace)
        if workspace.status == WorkspaceStatus.ACTIVE and workspace.container_id:
            try:
                stats = await self._containers.get_container_stats(workspace.container_id)
            except Exception as e:
                logger.warning(
                    "Failed to get stats for workspace %s: %s",
                    workspace_id,
                    e,
                    extra={"event": LogEvent.STATS_UNAVAILABLE, "ws_id": workspace_id},
                )
                stats = ContainerStats.zero()
            await self._persist_stats(workspace_id, stats)

        return WorkspaceStats(
            id=workspace.id,
            name=workspace.name,
            status=workspace.status,
            **stats.to_dict(),
            last_accessed_at=workspace.last_accessed_at,
            created_at=workspace.created_at,
        )

    async def _persist_stats(self, workspace_id: str, stats: ContainerStats) -> None:
        try:
            async with self._locks.get(workspace_id):
                async with self._session_factory() as db:
                    await db.execute(
                        update(Workspace)
                        .where(Workspace.id == workspace_id)
                        .values(**stats.to_dict(), updated_at=datetime.now(UTC))
                    )
                    await db.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to persist stats for workspace %s: %s",
                workspace_id,
                e,
                extra={"event": LogEvent.STATS_UNAVAILABLE, "ws_id": workspace_id},
            )

    async def get_all_workspaces_stats(self) -> list[WorkspaceStats]:
        async with self._session_factory() as db:
            result = await db.execute(select(Workspace.id).order_by(Workspace.created_at))
            workspace_ids = list(result.scalars().all())

        results = await asyncio.gather(
            *(self.get_workspace_stats(workspace_id) for workspace_id in workspace_ids)
        )
        return [stats for stats in results if stats is not None]

    # =========================================================================
    # Direct updates
    # =========================================================================

    async def _update_fields(self, workspace_id: str, **values) -> None:
        async with self._locks.get(workspace_id):
            async with self._session_factory() as db:
                result = await db.execute(
                    update(Workspace).where(Workspace.id == workspace_id).values(**values)
                )
                await db.commit()
        if result.rowcount == 0:
            raise WorkspaceNotFoundError()

    async def _enter_error(self, workspace_id: str) -> None:
        async with self._locks.get(workspace_id):
            async with self._session_factory() as db:
                workspace = await db.get(Workspace, workspace_id)
                if workspace is None:
                    raise WorkspaceNotFoundError()

                if workspace.container_id:
                    await self._containers.remove_container(workspace.container_id)

                workspace.status = WorkspaceStatus.ERROR
                workspace.vnc_port = None
                workspace.container_id = None
                workspace.desktop_url = None
                workspace.updated_at = datetime.now(UTC)
                await db.commit()

    async def update_workspace_status(
        self, workspace_id: str, status: WorkspaceStatus
    ) -> None:
        """Set status unconditionally (administrative).

        ERROR holds no port: the container is removed first, then port,
        container id and desktop URL are cleared with the status change.

        Raises:
            WorkspaceNotFoundError: Unknown workspace
            ContainerOperationFailedError: Container removal failed; record is kept
        """
        if status == WorkspaceStatus.ERROR:
            await self._enter_error(workspace_id)
        else:
            await self._update_fields(workspace_id, status=status, updated_at=datetime.now(UTC))
        logger.info(
            "Workspace %s status set to %s",
            workspace_id,
            status,
            extra={"event": LogEvent.STATE_CHANGED, "ws_id": workspace_id, "status": status},
        )

    async def update_last_accessed(self, workspace_id: str) -> None:
        now = datetime.now(UTC)
        await self._update_fields(workspace_id, last_accessed_at=now, updated_at=now)

    # =========================================================================
    # Delete
    # =========================================================================

    async def delete_workspace(self, workspace_id: str) -> None:
        """Stop and remove the container, then delete the record.

        Raises:
            WorkspaceNotFoundError: Unknown workspace
            ContainerOperationFailedError: Stop/remove failed; record is kept
            EngineTimeoutError: Engine did not answer; record is kept
        """
        async with self._locks.get(workspace_id):
            async with self._session_factory() as db:
                workspace = await db.get(Workspace, workspace_id)
                if workspace is None:
                    raise WorkspaceNotFoundError()

                if workspace.container_id:
                    await self._containers.stop_container(workspace.container_id)
                    await self._containers.remove_container(workspace.container_id)

                await db.delete(workspace)
                await db.commit()

        self._locks.discard(workspace_id)
        logger.info(
            "Workspace deleted",
            extra={"event": LogEvent.WORKSPACE_DELETED, "ws_id": workspace_id},
        )

    # =========================================================================
    # Task management
    # =========================================================================

    async def join(self) -> None:
        """Wait for all in-flight provisioning tasks."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight provisioning (records stay PROVISIONING for the sweeper)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
