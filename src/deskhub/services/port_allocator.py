"""VNC host port allocation.

Ports are handed out from [range_start, range_end) in ascending order. A port
is held by the workspace whose vnc_port column carries it; allocation writes
the chosen port into the requesting workspace's row, so check and reserve
happen in one step.

Concurrency:
- Allocations in one process are serialized by an asyncio.Lock.
- The unique constraint on workspaces.vnc_port rejects a port taken by another
  process between the scan and the write; the allocator then tries the next one.
"""

import asyncio
import logging
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deskhub.app.config import get_settings
from deskhub.app.metrics.collector import PORT_ALLOCATIONS_TOTAL
from deskhub.core.errors import PortExhaustionError, WorkspaceNotFoundError
from deskhub.core.logging_schema import LogEvent
from deskhub.core.models import Workspace

logger = logging.getLogger(__name__)


class PortAllocator:
    """Lowest-free-port allocator backed by the workspaces table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        range_start: int | None = None,
        range_end: int | None = None,
    ) -> None:
        config = get_settings().port
        self._session_factory = session_factory
        self._start = range_start if range_start is not None else config.range_start
        self._end = range_end if range_end is not None else config.range_end
        self._lock = asyncio.Lock()

    @property
    def port_range(self) -> range:
        return range(self._start, self._end)

    async def _held_ports(self, db: AsyncSession) -> set[int]:
        result = await db.execute(
            select(Workspace.vnc_port).where(
                Workspace.vnc_port >= self._start,
                Workspace.vnc_port < self._end,
            )
        )
        return set(result.scalars().all())

    async def allocate(self, workspace_id: str) -> int:
        """Reserve the lowest free port for a workspace.

        Args:
            workspace_id: Workspace that will hold the port

        Returns:
            The reserved port

        Raises:
            PortExhaustionError: Every port in the range is held
            WorkspaceNotFoundError: Workspace row no longer exists
        """
        async with self._lock:
            async with self._session_factory() as db:
                held = await self._held_ports(db)
                for port in self.port_range:
                    if port in held:
                        continue
                    try:
                        result = await db.execute(
                            update(Workspace)
                            .where(Workspace.id == workspace_id)
                            .values(vnc_port=port, updated_at=datetime.now(UTC))
                        )
                        await db.commit()
                    except IntegrityError:
                        # Taken by another process since the scan
                        await db.rollback()
                        continue

                    if result.rowcount == 0:
                        raise WorkspaceNotFoundError()

                    PORT_ALLOCATIONS_TOTAL.labels(result="allocated").inc()
                    logger.info(
                        "Allocated VNC port %d",
                        port,
                        extra={
                            "event": LogEvent.PORT_ALLOCATED,
                            "ws_id": workspace_id,
                            "vnc_port": port,
                        },
                    )
                    return port

        PORT_ALLOCATIONS_TOTAL.labels(result="exhausted").inc()
        logger.error(
            "No available ports in range %d-%d",
            self._start,
            self._end,
            extra={"event": LogEvent.PORT_EXHAUSTED, "ws_id": workspace_id},
        )
        raise PortExhaustionError(
            f"No available ports in range {self._start}-{self._end}"
        )

