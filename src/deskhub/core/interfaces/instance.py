"""Container controller interface for workspace desktops."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from deskhub.core.stats import ContainerStats


@dataclass
class ContainerInfo:
    """Workspace container enumeration result."""

    container_id: str
    workspace_id: str | None
    name: str
    state: str
    status: str

    @property
    def running(self) -> bool:
        return self.state == "running"


class ContainerController(ABC):
    """Interface for workspace container lifecycle.

    Implementations: DockerContainerController
    """

    @abstractmethod
    async def create_workspace_container(self, workspace_id: str, vnc_port: int) -> str:
        """Create and start the desktop container for a workspace.

        Args:
            workspace_id: Workspace ID
            vnc_port: Host port published for the VNC endpoint

        Returns:
            Container ID of the running container

        Raises:
            ProvisioningFailedError: Engine rejected create or start
            EngineTimeoutError: Engine did not answer in time
        """
        ...

    @abstractmethod
    async def stop_container(self, container_id: str) -> None:
        """Stop a container.

        Raises:
            ContainerOperationFailedError: Engine rejected the stop
        """
        ...

    @abstractmethod
    async def remove_container(self, container_id: str) -> None:
        """Force-remove a container regardless of running state.

        Raises:
            ContainerOperationFailedError: Engine rejected the removal
        """
        ...

    @abstractmethod
    async def remove_workspace_container(self, workspace_id: str) -> None:
        """Force-remove the container named after a workspace, if any.

        Works without a recorded container id (e.g. provisioning interrupted
        between start and the final record update).

        Raises:
            ContainerOperationFailedError: Engine rejected the removal
        """
        ...

    @abstractmethod
    async def list_workspace_containers(self) -> list[ContainerInfo]:
        """List all workspace-labelled containers.

        Best effort: returns an empty list when enumeration fails.
        """
        ...

    @abstractmethod
    async def get_container_stats(self, container_id: str) -> ContainerStats:
        """Read one normalized stats sample.

        Raises:
            StatsUnavailableError: Stats could not be read
            EngineTimeoutError: Engine did not answer in time
        """
        ...

    async def close(self) -> None:
        """Release resources held by the controller."""
