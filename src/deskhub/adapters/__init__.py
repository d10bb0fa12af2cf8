"""Adapters module - infrastructure implementations."""

from deskhub.adapters.instance import DockerContainerController

__all__ = [
    "DockerContainerController",
]
