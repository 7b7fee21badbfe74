"""Task-row handler for the tracker sheet."""
from .handler import TasksHandler

__all__ = ["TasksHandler"]
