"""Background control loops."""

from deskhub.control.sweeper import ProvisioningSweeper

__all__ = ["ProvisioningSweeper"]
