"""ProvisioningSweeper - stuck provisioning and orphan container cleanup.

Provisioning is a fire-and-forget task, so a process restart mid-provisioning
leaves the record in PROVISIONING forever. The sweeper moves such records to
ERROR once they exceed the provisioning timeout. The container started for
such a record is removed by name first, then the port is released.

It also reports workspace containers whose workspace record no longer exists.
They are removed only when SWEEPER_REMOVE_ORPHANS is enabled.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deskhub.app.config import get_settings
from deskhub.app.metrics.collector import SWEEPER_ORPHANS_TOTAL, SWEEPER_STUCK_TOTAL
from deskhub.core.domain import WorkspaceStatus
from deskhub.core.errors import DeskHubError
from deskhub.core.interfaces import ContainerController, ContainerInfo
from deskhub.core.logging_schema import Component, LogEvent
from deskhub.core.models import Workspace

logger = logging.getLogger(__name__)

STUCK_ERROR_MESSAGE = "Provisioning timed out"


class ProvisioningSweeper:
    """Periodic reconciliation of workspace records against reality."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        containers: ContainerController,
    ) -> None:
        config = get_settings().sweeper
        self._session_factory = session_factory
        self._containers = containers
        self._interval = config.interval
        self._timeout = timedelta(seconds=config.provisioning_timeout)
        self._remove_orphans = config.remove_orphans

    async def sweep_stuck(self) -> int:
        """Mark PROVISIONING workspaces older than the timeout as ERROR.

        The workspace's container (if provisioning got as far as starting
        one) is removed before the port is released. A workspace whose
        container cannot be removed stays PROVISIONING until a later cycle.

        Returns:
            Number of workspaces moved to ERROR
        """
        now = datetime.now(UTC)
        cutoff = now - self._timeout
        async with self._session_factory() as db:
            result = await db.execute(
                select(Workspace.id).where(
                    Workspace.status == WorkspaceStatus.PROVISIONING,
                    Workspace.updated_at < cutoff,
                )
            )
            stuck = list(result.scalars().all())
        if not stuck:
            return 0

        released = []
        for workspace_id in stuck:
            try:
                await self._containers.remove_workspace_container(workspace_id)
            except DeskHubError as e:
                logger.error(
                    "Failed to remove container of stuck workspace %s: %s",
                    workspace_id,
                    e,
                    extra={
                        "event": LogEvent.CONTAINER_OPERATION_FAILED,
                        "component": Component.SWEEPER,
                        "ws_id": workspace_id,
                    },
                )
                continue
            released.append(workspace_id)
        if not released:
            return 0

        async with self._session_factory() as db:
            result = await db.execute(
                update(Workspace)
                .where(
                    Workspace.id.in_(released),
                    Workspace.status == WorkspaceStatus.PROVISIONING,
                    Workspace.updated_at < cutoff,
                )
                .values(
                    status=WorkspaceStatus.ERROR,
                    vnc_port=None,
                    container_id=None,
                    desktop_url=None,
                    error_message=STUCK_ERROR_MESSAGE,
                    updated_at=now,
                )
            )
            await db.commit()

        count = result.rowcount
        if count:
            SWEEPER_STUCK_TOTAL.inc(count)
            logger.warning(
                "Marked %d stuck workspaces as ERROR",
                count,
                extra={
                    "event": LogEvent.STATE_CHANGED,
                    "component": Component.SWEEPER,
                    "count": count,
                },
            )
        return count

    async def sweep_orphans(self) -> list[ContainerInfo]:
        """Find workspace containers without a workspace record.

        Containers are listed before records are read, so a workspace created
        in between is never mistaken for an orphan.

        Returns:
            The orphan containers found this cycle
        """
        containers = await self._containers.list_workspace_containers()
        if not containers:
            return []

        workspace_ids = {c.workspace_id for c in containers if c.workspace_id}
        async with self._session_factory() as db:
            result = await db.execute(
                select(Workspace.id).where(Workspace.id.in_(list(workspace_ids)))
            )
            known = set(result.scalars().all())

        orphans = [c for c in containers if c.workspace_id not in known]
        for orphan in orphans:
            SWEEPER_ORPHANS_TOTAL.inc()
            logger.warning(
                "Orphan workspace container: %s",
                orphan.name,
                extra={
                    "event": LogEvent.ORPHAN_CONTAINER,
                    "component": Component.SWEEPER,
                    "container": orphan.container_id,
                    "ws_id": orphan.workspace_id,
                },
            )
            if self._remove_orphans:
                await self._containers.remove_container(orphan.container_id)
        return orphans

    async def tick(self) -> None:
        """Execute one sweep cycle."""
        stuck = await self.sweep_stuck()
        orphans = await self.sweep_orphans()
        logger.debug(
            "Sweep complete (stuck=%d, orphans=%d)",
            stuck,
            len(orphans),
            extra={"event": LogEvent.SWEEP_COMPLETE, "component": Component.SWEEPER},
        )

    async def run(self) -> None:
        """Run sweep cycles until cancelled. A failed cycle is logged and skipped."""
        logger.info(
            "Provisioning sweeper started (interval=%.0fs)",
            self._interval,
            extra={"event": LogEvent.APP_STARTED, "component": Component.SWEEPER},
        )
        while True:
            try:
                await self.tick()
            except Exception as e:
                logger.exception(
                    "Sweep cycle failed: %s",
                    e,
                    extra={"event": LogEvent.SWEEP_FAILED, "component": Component.SWEEPER},
                )
            await asyncio.sleep(self._interval)
