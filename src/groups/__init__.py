"""Groups package."""

from src.groups.manager import GroupManager

__all__ = ["GroupManager"]
