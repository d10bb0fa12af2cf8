"""Docker container controller implementation."""

import logging

import httpx

from deskhub.app.config import get_settings
from deskhub.app.metrics.collector import DOCKER_API_FAILURES_TOTAL
from deskhub.core.errors import (
    ContainerOperationFailedError,
    EngineTimeoutError,
    ProvisioningFailedError,
    StatsUnavailableError,
)
from deskhub.core.interfaces import ContainerController, ContainerInfo
from deskhub.core.logging_schema import LogEvent
from deskhub.core.stats import ContainerStats, compute_stats
from deskhub.infra.docker import ContainerAPI, ContainerConfig, HostConfig

logger = logging.getLogger(__name__)

# Labels used to enumerate workspace containers
LABEL_WORKSPACE = "workspace"
LABEL_TYPE = "type"
WORKSPACE_TYPE = "workspace"


class DockerContainerController(ContainerController):
    """Docker-based workspace container controller using ContainerAPI."""

    def __init__(self, containers: ContainerAPI | None = None) -> None:
        self._docker = get_settings().docker
        self._containers = containers or ContainerAPI()

    def _container_name(self, workspace_id: str) -> str:
        return f"{self._docker.resource_prefix}{workspace_id}"

    def _container_config(self, workspace_id: str, vnc_port: int) -> ContainerConfig:
        port_key = f"{vnc_port}/tcp"
        return ContainerConfig(
            image=self._docker.image,
            name=self._container_name(workspace_id),
            env=[f"DISPLAY={self._docker.display}", f"VNC_PORT={vnc_port}"],
            exposed_ports={port_key: {}},
            labels={LABEL_WORKSPACE: workspace_id, LABEL_TYPE: WORKSPACE_TYPE},
            host_config=HostConfig(
                port_bindings={port_key: [{"HostPort": str(vnc_port)}]},
                memory=self._docker.memory_limit,
                cpu_shares=self._docker.cpu_shares,
                restart_policy=self._docker.restart_policy,
            ),
        )

    async def create_workspace_container(self, workspace_id: str, vnc_port: int) -> str:
        """Create and start the desktop container.

        A stale container left under the same name by an earlier attempt is
        force-removed first. If start fails, the new container is removed so
        nothing is left unaccounted for.
        """
        container_name = self._container_name(workspace_id)
        config = self._container_config(workspace_id, vnc_port)

        try:
            if await self._containers.inspect(container_name):
                logger.warning("Removing stale container: %s", container_name)
                await self._containers.remove(container_name, force=True)
            container_id = await self._containers.create(config)
        except httpx.TimeoutException as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="create").inc()
            raise EngineTimeoutError(
                f"Timed out creating workspace container: {container_name}"
            ) from e
        except httpx.HTTPError as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="create").inc()
            raise ProvisioningFailedError(
                f"Failed to create workspace container: {e}"
            ) from e

        try:
            await self._containers.start(container_id)
        except httpx.HTTPError as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="start").inc()
            await self._discard(container_id)
            if isinstance(e, httpx.TimeoutException):
                raise EngineTimeoutError(
                    f"Timed out starting workspace container: {container_name}"
                ) from e
            raise ProvisioningFailedError(
                f"Failed to start workspace container: {e}"
            ) from e

        logger.info(
            "Workspace container running: %s",
            container_name,
            extra={
                "event": LogEvent.CONTAINER_STARTED,
                "ws_id": workspace_id,
                "container": container_id,
                "vnc_port": vnc_port,
            },
        )
        return container_id

    async def _discard(self, container_id: str) -> None:
        """Best-effort removal of a container that failed to start."""
        try:
            await self._containers.remove(container_id, force=True)
        except httpx.HTTPError as e:
            logger.error(
                "Failed to remove dangling container %s: %s",
                container_id,
                e,
                extra={
                    "event": LogEvent.CONTAINER_OPERATION_FAILED,
                    "container": container_id,
                },
            )

    async def stop_container(self, container_id: str) -> None:
        try:
            await self._containers.stop(container_id, timeout=self._docker.stop_timeout)
        except httpx.TimeoutException as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="stop").inc()
            raise EngineTimeoutError(f"Timed out stopping container {container_id}") from e
        except httpx.HTTPError as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="stop").inc()
            logger.error(
                "Failed to stop container: %s",
                e,
                extra={
                    "event": LogEvent.CONTAINER_OPERATION_FAILED,
                    "container": container_id,
                },
            )
            raise ContainerOperationFailedError(f"Failed to stop container: {e}") from e

    async def remove_container(self, container_id: str) -> None:
        try:
            await self._containers.remove(container_id, force=True)
        except httpx.TimeoutException as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="remove").inc()
            raise EngineTimeoutError(f"Timed out removing container {container_id}") from e
        except httpx.HTTPError as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="remove").inc()
            logger.error(
                "Failed to remove container: %s",
                e,
                extra={
                    "event": LogEvent.CONTAINER_OPERATION_FAILED,
                    "container": container_id,
                },
            )
            raise ContainerOperationFailedError(f"Failed to remove container: {e}") from e

    async def remove_workspace_container(self, workspace_id: str) -> None:
        await self.remove_container(self._container_name(workspace_id))

    async def list_workspace_containers(self) -> list[ContainerInfo]:
        """List containers labelled type=workspace.

        Listing is best effort: any engine failure yields an empty list.
        """
        try:
            containers = await self._containers.list(
                filters={"label": [f"{LABEL_TYPE}={WORKSPACE_TYPE}"]}
            )
        except Exception as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="list").inc()
            logger.error(
                "Failed to list workspace containers: %s",
                e,
                extra={"event": LogEvent.CONTAINER_OPERATION_FAILED},
            )
            return []

        results = []
        for container in containers:
            names = container.get("Names") or []
            labels = container.get("Labels") or {}
            results.append(
                ContainerInfo(
                    container_id=container.get("Id", ""),
                    workspace_id=labels.get(LABEL_WORKSPACE),
                    name=names[0].lstrip("/") if names else "",
                    state=container.get("State", "unknown"),
                    status=container.get("Status", ""),
                )
            )
        return results

    async def get_container_stats(self, container_id: str) -> ContainerStats:
        try:
            raw = await self._containers.stats(container_id)
        except httpx.TimeoutException as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="stats").inc()
            raise EngineTimeoutError(
                f"Timed out reading stats for container {container_id}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            DOCKER_API_FAILURES_TOTAL.labels(operation="stats").inc()
            raise StatsUnavailableError(f"Failed to get container stats: {e}") from e
        return compute_stats(raw)

    async def close(self) -> None:
        """Close is no-op (Docker client is singleton)."""
        pass
