"""Task model tracked by the lifecycle coordinator.

Only one task exists at a time. It is never persisted; ``to_dict`` renders the
camelCase shape served by ``GET /tasks/current``.
"""

from __future__ import annotations

import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional, Union

from ..constants import LOG_BUFFER_LIMIT


LogLevel = Literal["info", "warn", "error", "debug", "success", "focus", "command"]
MessageParams = dict[str, Union[str, int, float]]

# Resolves a pending choice when the task is cancelled instead of answered.
CANCELLED_CHOICE = "__cancelled__"


class TaskStatus(str, Enum):
    """Lifecycle status of the current task."""

    RUNNING = "running"
    WAITING_INPUT = "waiting_input"
    DONE = "done"
    ERROR = "error"

    @property
    def is_active(self) -> bool:
        return self in (TaskStatus.RUNNING, TaskStatus.WAITING_INPUT)


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_task_id() -> str:
    """Short readable task id: ``t_<8hex>``."""
    return f"t_{uuid.uuid4().hex[:8]}"


@dataclass
class Choice:
    id: str
    label: str


@dataclass
class TaskLog:
    level: LogLevel
    message: str
    ts: int = field(default_factory=now_ms)
    message_key: Optional[str] = None
    message_params: Optional[MessageParams] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"level": self.level, "message": self.message, "ts": self.ts}
        if self.message_key:
            data["messageKey"] = self.message_key
        if self.message_params:
            data["messageParams"] = dict(self.message_params)
        return data


@dataclass
class Task:
    """The single unit of agent work the daemon tracks."""

    repo_id: str
    prompt: str
    id: str = field(default_factory=generate_task_id)
    status: TaskStatus = TaskStatus.RUNNING
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    logs: deque[TaskLog] = field(default_factory=lambda: deque(maxlen=LOG_BUFFER_LIMIT))
    external: bool = False
    summary: Optional[str] = None

    def set_status(self, status: TaskStatus) -> None:
        self.status = status
        self.updated_at = now_ms()

    def append_log(self, entry: TaskLog) -> None:
        # deque(maxlen) evicts the oldest entry on overflow
        self.logs.append(entry)
        self.updated_at = now_ms()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "repoId": self.repo_id,
            "prompt": self.prompt,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "logs": [entry.to_dict() for entry in self.logs],
            "external": self.external,
        }
        if self.summary is not None:
            data["summary"] = self.summary
        return data
