"""Workspace model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, String
from sqlmodel import Field, SQLModel

from deskhub.core.domain.workspace import WorkspaceStatus


class Workspace(SQLModel, table=True):
    """A user's desktop workspace and its backing container handle.

    user_id and vnc_port are unique: one workspace per user, and one
    workspace per bound host port.
    """

    __tablename__ = "workspaces"

    id: str = Field(primary_key=True)
    user_id: str = Field(sa_column=Column(String, nullable=False, unique=True, index=True))

    name: str = Field(max_length=255)
    description: str | None = Field(default=None, max_length=500)
    status: WorkspaceStatus = Field(default=WorkspaceStatus.PROVISIONING, sa_type=String)

    container_id: str | None = None
    vnc_port: int | None = Field(default=None, unique=True)
    desktop_url: str | None = Field(default=None, max_length=255)
    error_message: str | None = None

    # Last observed resource counters (null until first observation)
    cpu_usage: float | None = None
    memory_usage: float | None = None
    disk_usage: float | None = None
    network_in: float | None = None
    network_out: float | None = None

    last_accessed_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))

    __table_args__ = (
        # Sweeper: stuck provisioning lookup
        Index(
            "idx_workspaces_provisioning",
            "status",
            "updated_at",
            postgresql_where="status = 'PROVISIONING'",
        ),
    )
