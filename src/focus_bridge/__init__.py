"""Provide the public `focus_bridge` package exports."""

from __future__ import annotations

from .constants import VERSION as __version__
from .server import create_app
from .task_engine.coordinator import TaskCoordinator

__all__ = ["TaskCoordinator", "__version__", "create_app"]
