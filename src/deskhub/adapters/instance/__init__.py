"""Container controller adapters."""

from deskhub.adapters.instance.docker import DockerContainerController

__all__ = ["DockerContainerController"]
