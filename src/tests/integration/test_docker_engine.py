"""Workspace container lifecycle against a real Docker engine.

Set DOCKER_IMAGE to an image already present on the engine to run the
lifecycle test.
"""

import os
import uuid

import pytest

from deskhub.adapters.instance import DockerContainerController

pytestmark = pytest.mark.integration


async def test_list_workspace_containers(controller: DockerContainerController):
    containers = await controller.list_workspace_containers()

    assert isinstance(containers, list)


@pytest.mark.skipif("DOCKER_IMAGE" not in os.environ, reason="DOCKER_IMAGE not set")
async def test_create_list_remove(controller: DockerContainerController):
    workspace_id = f"it-{uuid.uuid4().hex[:8]}"

    container_id = await controller.create_workspace_container(workspace_id, 19999)
    try:
        listed = await controller.list_workspace_containers()
        assert workspace_id in {c.workspace_id for c in listed}

        stats = await controller.get_container_stats(container_id)
        assert stats.disk_usage == 0.0
    finally:
        await controller.remove_container(container_id)

    listed = await controller.list_workspace_containers()
    assert workspace_id not in {c.workspace_id for c in listed}
