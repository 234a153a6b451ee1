"""Push-channel events.

Every event sent to WebSocket clients is one variant of the closed
:data:`DaemonEvent` union, discriminated on ``type``. Field names are
snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .task_engine.model import LogLevel, MessageParams


class _Event(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    task_id: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ChoiceItem(BaseModel):
    id: str
    label: str


class DoneMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    changed_files: Optional[Union[int, float]] = None
    tests: Optional[Literal["passed", "failed", "not_run"]] = None


class TaskStarted(_Event):
    type: Literal["task.started"] = "task.started"
    repo_id: str
    started_at: int
    prompt: Optional[str] = None
    has_image: Optional[bool] = None


class TaskLogged(_Event):
    type: Literal["task.log"] = "task.log"
    level: LogLevel
    message: str
    message_key: Optional[str] = None
    message_params: Optional[MessageParams] = None


class TaskNeedInput(_Event):
    type: Literal["task.need_input"] = "task.need_input"
    question: str
    choices: list[ChoiceItem] = Field(default_factory=list)


class TaskDone(_Event):
    type: Literal["task.done"] = "task.done"
    summary: str
    summary_key: Optional[str] = None
    meta: DoneMeta = Field(default_factory=DoneMeta)


class TaskFailed(_Event):
    type: Literal["task.error"] = "task.error"
    message: str
    message_key: Optional[str] = None
    details: Optional[str] = None


class TaskProgress(_Event):
    type: Literal["task.progress"] = "task.progress"
    current: Union[int, float]
    total: Union[int, float]
    label: Optional[str] = None


DaemonEvent = Annotated[
    Union[TaskStarted, TaskLogged, TaskNeedInput, TaskDone, TaskFailed, TaskProgress],
    Field(discriminator="type"),
]

EVENT_TYPES = (
    "task.started",
    "task.log",
    "task.need_input",
    "task.done",
    "task.error",
    "task.progress",
)

_adapter: TypeAdapter = TypeAdapter(DaemonEvent)


def parse_event(data: Any) -> Optional[DaemonEvent]:
    """Parse a wire payload into an event, or None if it is malformed."""
    if not isinstance(data, dict):
        return None
    try:
        return _adapter.validate_python(data)
    except ValidationError:
        return None
