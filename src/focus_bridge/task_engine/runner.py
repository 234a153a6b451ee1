"""Scripted lifecycle driver.

The runner walks a task through a fixed script of simulated steps. It checks
for cancellation after every step and exits quietly when the task was
cancelled; the cancel operation has already reported it.

States::

    starting → analyzing → found_files → generating → awaiting_choice
      → (applying | skipping | modifying) → finishing → done

``error`` is entered from any step on an unexpected exception, ``cancelled``
from any cancellation check.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from loguru import logger

from ..events import DoneMeta
from .model import CANCELLED_CHOICE, Choice, MessageParams

if TYPE_CHECKING:
    from .coordinator import TaskCoordinator


class RunnerState(str, Enum):
    STARTING = "starting"
    ANALYZING = "analyzing"
    FOUND_FILES = "found_files"
    GENERATING = "generating"
    AWAITING_CHOICE = "awaiting_choice"
    APPLYING = "applying"
    SKIPPING = "skipping"
    MODIFYING = "modifying"
    FINISHING = "finishing"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ScriptStep:
    state: RunnerState
    message: str
    message_key: str
    delay: float
    params: Optional[MessageParams] = field(default=None)


CHANGED_FILES = 3

REVIEW_QUESTION = "Apply the following changes?"
REVIEW_CHOICES = (
    Choice(id="apply", label="Apply Changes"),
    Choice(id="skip", label="Skip"),
    Choice(id="modify", label="Modify & Retry"),
)

# Steps before the review question. Delays are in seconds.
PREAMBLE = (
    ScriptStep(RunnerState.ANALYZING, "Analyzing codebase...", "daemon.log.analyzing", 1.0),
    ScriptStep(
        RunnerState.FOUND_FILES,
        f"Found {CHANGED_FILES} files to modify",
        "daemon.log.foundFiles",
        0.8,
        {"count": CHANGED_FILES},
    ),
    ScriptStep(RunnerState.GENERATING, "Generating changes...", "daemon.log.generating", 1.5),
)


class ScriptedRunner:
    """Drive one task through the scripted steps.

    Args:
        coordinator: Owner of the task; all state changes go through it.
        delay_scale: Multiplier for the simulated step delays (0 disables them).
        sleep: Awaitable sleep function, replaceable in tests.
    """

    def __init__(
        self,
        coordinator: "TaskCoordinator",
        *,
        delay_scale: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._coordinator = coordinator
        self._delay_scale = delay_scale
        self._sleep = sleep
        self.state = RunnerState.STARTING

    async def run(self, task_id: str, prompt: str) -> RunnerState:
        coordinator = self._coordinator
        try:
            if coordinator.is_cancelled(task_id):
                return self._exit(RunnerState.CANCELLED)
            coordinator.log(task_id, "info", f'Starting task: "{prompt}"', "daemon.log.startingTask", {"prompt": prompt})
            if await self._step_cancelled(task_id, 0.5):
                return self._exit(RunnerState.CANCELLED)

            for step in PREAMBLE:
                self.state = step.state
                coordinator.log(task_id, "info", step.message, step.message_key, step.params)
                if await self._step_cancelled(task_id, step.delay):
                    return self._exit(RunnerState.CANCELLED)

            self.state = RunnerState.AWAITING_CHOICE
            coordinator.log(task_id, "info", "Changes ready for review", "daemon.log.changesReady")
            choice = await coordinator.wait_for_input(task_id, REVIEW_QUESTION, REVIEW_CHOICES)
            if coordinator.is_cancelled(task_id) or choice == CANCELLED_CHOICE:
                return self._exit(RunnerState.CANCELLED)

            coordinator.mark_running(task_id)
            if choice == "apply":
                self.state = RunnerState.APPLYING
                coordinator.log(task_id, "info", "Applying changes...", "daemon.log.applying")
                if await self._step_cancelled(task_id, 1.0):
                    return self._exit(RunnerState.CANCELLED)
                coordinator.log(task_id, "info", "Changes applied successfully", "daemon.log.applied")
            elif choice == "skip":
                self.state = RunnerState.SKIPPING
                coordinator.log(task_id, "info", "Changes skipped", "daemon.log.skipped")
            else:
                self.state = RunnerState.MODIFYING
                coordinator.log(task_id, "info", "Regenerating with modifications...", "daemon.log.regenerating")
                if await self._step_cancelled(task_id, 1.0):
                    return self._exit(RunnerState.CANCELLED)

            self.state = RunnerState.FINISHING
            if await self._step_cancelled(task_id, 0.5):
                return self._exit(RunnerState.CANCELLED)

            coordinator.mark_done(
                task_id,
                f"Completed: {prompt}. Modified {CHANGED_FILES} files.",
                meta=DoneMeta(changed_files=CHANGED_FILES, tests="not_run"),
            )
            return self._exit(RunnerState.DONE)
        except Exception as exc:
            if coordinator.is_cancelled(task_id):
                return self._exit(RunnerState.CANCELLED)
            logger.error("Runner failed for task {} in state {}: {}", task_id, self.state.value, exc)
            coordinator.mark_failed(task_id, str(exc) or "Unknown error")
            return self._exit(RunnerState.ERROR)
        finally:
            coordinator.finish_run(task_id)

    async def _step_cancelled(self, task_id: str, delay: float) -> bool:
        await self._sleep(delay * self._delay_scale)
        return self._coordinator.is_cancelled(task_id)

    def _exit(self, state: RunnerState) -> RunnerState:
        self.state = state
        if state is RunnerState.CANCELLED:
            logger.debug("Runner observed cancellation, exiting")
        return state
