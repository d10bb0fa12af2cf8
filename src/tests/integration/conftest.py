"""Integration test fixtures (require a running Docker engine)."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from deskhub.adapters.instance import DockerContainerController
from deskhub.infra.docker import ContainerAPI, DockerClient


@pytest_asyncio.fixture
async def docker_client() -> AsyncGenerator[DockerClient, None]:
    client = DockerClient()
    try:
        await client.ping()
    except Exception as e:
        await client.close()
        pytest.skip(f"Docker engine not reachable: {e}")
    yield client
    await client.close()


@pytest.fixture
def controller(docker_client: DockerClient) -> DockerContainerController:
    return DockerContainerController(containers=ContainerAPI(docker_client))
