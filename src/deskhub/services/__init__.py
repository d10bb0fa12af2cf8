"""Services module."""

from deskhub.services.port_allocator import PortAllocator
from deskhub.services.workspace_service import WorkspaceOrchestrator, WorkspaceStats

__all__ = ["PortAllocator", "WorkspaceOrchestrator", "WorkspaceStats"]
