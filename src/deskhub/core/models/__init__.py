"""Database models for deskhub.

Models are defined using SQLModel (SQLAlchemy + Pydantic).
"""

from deskhub.core.models.workspace import Workspace

__all__ = [
    "Workspace",
]
