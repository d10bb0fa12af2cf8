"""Per-workspace locks for serializing mutations."""

import asyncio


class WorkspaceLocks:
    """Registry of per-workspace asyncio locks.

    Prevents interleaved updates (provisioning completion, stats refresh,
    status updates, delete) on the same workspace within one process.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, workspace_id: str) -> asyncio.Lock:
        """Get or create the lock for a workspace."""
        if workspace_id not in self._locks:
            self._locks[workspace_id] = asyncio.Lock()
        return self._locks[workspace_id]

    def discard(self, workspace_id: str) -> None:
        """Drop an idle lock (after the workspace is deleted)."""
        lock = self._locks.get(workspace_id)
        if lock is not None and not lock.locked():
            del self._locks[workspace_id]
