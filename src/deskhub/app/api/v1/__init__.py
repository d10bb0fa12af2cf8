"""API v1 module."""

from deskhub.app.api.v1.workspaces import admin_router, router as workspaces_router

__all__ = ["admin_router", "workspaces_router"]
