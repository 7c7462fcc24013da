"""Route group exports."""

from . import approvals, health, optimization, placement

__all__ = ["health", "optimization", "placement", "approvals"]
