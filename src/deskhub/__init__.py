"""deskhub - per-user desktop workspace container orchestrator."""

__version__ = "0.1.0"
