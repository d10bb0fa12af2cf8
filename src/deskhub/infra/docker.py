"""Docker Engine API client with Pydantic models.

Provides async Docker API access for workspace containers.
Supports both Unix socket and TCP (docker-proxy) connections.

Configuration via DockerConfig (DOCKER_ env prefix).
"""

import json
import logging

import httpx
from pydantic import BaseModel

from deskhub.app.config import get_settings
from deskhub.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models
# =============================================================================


class HostConfig(BaseModel):
    """Docker HostConfig for container creation."""

    port_bindings: dict[str, list[dict[str, str]]] = {}
    memory: int | None = None
    cpu_shares: int | None = None
    restart_policy: str | None = None

    model_config = {"frozen": True}

    def to_api(self) -> dict:
        """Convert to Docker API format."""
        result: dict = {}
        if self.port_bindings:
            result["PortBindings"] = self.port_bindings
        if self.memory is not None:
            result["Memory"] = self.memory
        if self.cpu_shares is not None:
            result["CpuShares"] = self.cpu_shares
        if self.restart_policy:
            result["RestartPolicy"] = {"Name": self.restart_policy}
        return result


class ContainerConfig(BaseModel):
    """Docker container configuration for creation."""

    image: str
    name: str
    env: list[str] = []
    exposed_ports: dict[str, dict] = {}
    labels: dict[str, str] = {}
    host_config: HostConfig = HostConfig()

    model_config = {"frozen": True}

    def to_api(self) -> dict:
        """Convert to Docker API JSON format."""
        result: dict = {
            "Image": self.image,
            "ExposedPorts": self.exposed_ports,
            "HostConfig": self.host_config.to_api(),
        }
        if self.env:
            result["Env"] = self.env
        if self.labels:
            result["Labels"] = self.labels
        return result


# =============================================================================
# Docker Client (Singleton)
# =============================================================================


class DockerClient:
    """Async Docker API client.

    Supports Unix socket and TCP connections.
    Every request is bounded by DockerConfig.api_timeout; timeouts surface
    as httpx.TimeoutException.
    """

    def __init__(
        self,
        docker_host: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config = get_settings().docker
        self._host = docker_host or config.host
        self._timeout = config.api_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _create_client(self) -> httpx.AsyncClient:
        """Create a new HTTP client."""
        if self._transport is not None:
            return httpx.AsyncClient(
                transport=self._transport,
                base_url="http://localhost",
                timeout=self._timeout,
            )
        if self._host.startswith("unix://"):
            socket_path = self._host.replace("unix://", "")
            transport = httpx.AsyncHTTPTransport(uds=socket_path)
            return httpx.AsyncClient(
                transport=transport,
                base_url="http://localhost",
                timeout=self._timeout,
            )
        base_url = self._host
        if base_url.startswith("tcp://"):
            base_url = base_url.replace("tcp://", "http://")
        return httpx.AsyncClient(base_url=base_url, timeout=self._timeout)

    @property
    def timeout(self) -> float:
        return self._timeout

    async def get(self) -> httpx.AsyncClient:
        """Get or create the HTTP client.

        Recreates the client if the previous one was closed
        (e.g., due to event loop change in tests).
        """
        if self._client is None or self._client.is_closed:
            self._client = self._create_client()
        return self._client

    async def ping(self) -> None:
        """Check engine reachability."""
        client = await self.get()
        resp = await client.get("/_ping")
        resp.raise_for_status()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


# Global singleton
_docker_client: DockerClient | None = None


def get_docker_client() -> DockerClient:
    """Get the global Docker client singleton."""
    global _docker_client
    if _docker_client is None:
        _docker_client = DockerClient()
    return _docker_client


async def close_docker() -> None:
    """Close the global Docker client."""
    global _docker_client
    if _docker_client:
        await _docker_client.close()
        _docker_client = None


# =============================================================================
# Container API
# =============================================================================


class ContainerAPI:
    """Container endpoints used by workspace provisioning.

    Each call names the engine status codes it treats as success besides
    2xx; any other error status raises httpx.HTTPStatusError.
    """

    def __init__(self, client: DockerClient | None = None) -> None:
        self._docker = client or get_docker_client()

    async def _call(
        self,
        method: str,
        path: str,
        *,
        tolerate: tuple[int, ...] = (),
        **kwargs,
    ) -> httpx.Response:
        client = await self._docker.get()
        resp = await client.request(method, path, **kwargs)
        if resp.status_code not in tolerate:
            resp.raise_for_status()
        return resp

    async def list(self, filters: dict | None = None) -> list[dict]:
        """Containers in any state, optionally filtered (Docker filter syntax)."""
        params: dict = {"all": "true"}
        if filters:
            params["filters"] = json.dumps(filters)
        resp = await self._call("GET", "/containers/json", params=params)
        return resp.json()

    async def inspect(self, name: str) -> dict | None:
        """Container details, or None when no such container exists."""
        resp = await self._call("GET", f"/containers/{name}/json", tolerate=(404,))
        if resp.status_code == 404:
            return None
        return resp.json()

    async def create(self, config: ContainerConfig) -> str:
        """Create a container and return its engine id."""
        resp = await self._call(
            "POST",
            "/containers/create",
            params={"name": config.name},
            json=config.to_api(),
        )
        container_id = resp.json()["Id"]
        logger.info(
            "Created container %s (%s)",
            config.name,
            container_id[:12],
            extra={"event": LogEvent.CONTAINER_CREATED, "container": config.name},
        )
        return container_id

    async def start(self, name: str) -> None:
        # 304: already running
        await self._call("POST", f"/containers/{name}/start", tolerate=(304,))

    async def stop(self, name: str, timeout: int = 10) -> None:
        """Stop with a grace period of ``timeout`` seconds before SIGKILL.

        Already stopped (304) and missing (404) containers count as stopped.
        """
        await self._call(
            "POST",
            f"/containers/{name}/stop",
            tolerate=(304, 404),
            params={"t": str(timeout)},
            # HTTP timeout must outlast the engine's own grace period
            timeout=self._docker.timeout + timeout,
        )
        logger.info(
            "Stopped container: %s",
            name,
            extra={"event": LogEvent.CONTAINER_STOPPED, "container": name},
        )

    async def remove(self, name: str, force: bool = True) -> None:
        """Remove a container; a missing container counts as removed."""
        resp = await self._call(
            "DELETE",
            f"/containers/{name}",
            tolerate=(404,),
            params={"force": "true" if force else "false"},
        )
        if resp.status_code == 404:
            return
        logger.info(
            "Removed container: %s",
            name,
            extra={"event": LogEvent.CONTAINER_REMOVED, "container": name},
        )

    async def stats(self, name: str) -> dict:
        """One stats sample (cpu_stats, precpu_stats, memory_stats, networks)."""
        resp = await self._call(
            "GET", f"/containers/{name}/stats", params={"stream": "false"}
        )
        return resp.json()
