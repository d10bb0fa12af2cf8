"""Infrastructure connections (DB, Docker engine)."""

from deskhub.infra.docker import (
    ContainerAPI,
    DockerClient,
    close_docker,
    get_docker_client,
)
from deskhub.infra.postgresql import (
    close_db,
    create_engine,
    create_session_factory,
    create_tables,
    get_engine,
    get_session_factory,
    init_db,
)

__all__ = [
    # DB
    "init_db",
    "close_db",
    "create_engine",
    "create_session_factory",
    "create_tables",
    "get_engine",
    "get_session_factory",
    # Docker
    "ContainerAPI",
    "DockerClient",
    "close_docker",
    "get_docker_client",
]
