"""Core interfaces."""

from deskhub.core.interfaces.instance import ContainerController, ContainerInfo

__all__ = [
    "ContainerController",
    "ContainerInfo",
]
