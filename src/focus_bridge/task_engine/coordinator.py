"""Task lifecycle coordinator.

The coordinator owns at most one :class:`Task`, drives its status transitions
and pushes every lifecycle event through an injected ``broadcast`` callable.

Cancellation is cooperative. Cancelled ids go into a set that outlives the task
object, so a runner that is still sleeping between steps can notice the
cancellation after the task reference has been cleared. The runner removes its
id from the set when it exits (see :meth:`TaskCoordinator.finish_run`).

All methods are meant to be called from the event loop thread. The only
suspension point inside a run is :meth:`TaskCoordinator.wait_for_input`.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Sequence

from loguru import logger

from ..constants import CANCELLED_MESSAGE, CANCELLED_MESSAGE_KEY
from ..events import (
    ChoiceItem,
    DaemonEvent,
    DoneMeta,
    TaskDone,
    TaskFailed,
    TaskLogged,
    TaskNeedInput,
    TaskProgress,
    TaskStarted,
)
from .model import (
    CANCELLED_CHOICE,
    Choice,
    LogLevel,
    MessageParams,
    Task,
    TaskLog,
    TaskStatus,
    generate_task_id,
    now_ms,
)

Broadcast = Callable[[DaemonEvent], None]


class TaskCoordinator:
    """Single-active-task state machine.

    Usage::

        coordinator = TaskCoordinator(hub.publish_sync)
        task_id = coordinator.create_task("default", "Fix bug")
        ...
        coordinator.submit_choice(task_id, "apply")
    """

    def __init__(
        self,
        broadcast: Broadcast,
        *,
        delay_scale: float = 1.0,
        id_factory: Callable[[], str] = generate_task_id,
        runner_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._broadcast = broadcast
        self._delay_scale = delay_scale
        self._id_factory = id_factory
        if runner_factory is None:
            from .runner import ScriptedRunner

            runner_factory = ScriptedRunner
        self._runner_factory = runner_factory

        self._current: Optional[Task] = None
        self._pending_choice: Optional[asyncio.Future[str]] = None
        self._cancelled: set[str] = set()
        self._runners: dict[str, asyncio.Task[Any]] = {}

    # -- inspection --------------------------------------------------------

    def get_current_task(self) -> Optional[Task]:
        return self._current

    def is_cancelled(self, task_id: str) -> bool:
        return task_id in self._cancelled

    @property
    def cancelled_ids(self) -> frozenset[str]:
        return frozenset(self._cancelled)

    @property
    def has_pending_choice(self) -> bool:
        return self._pending_choice is not None

    def is_running(self, task_id: str) -> bool:
        """True while a runner for *task_id* is in flight."""
        return task_id in self._runners

    # -- admission ---------------------------------------------------------

    def _admit(self) -> bool:
        if self._current is not None and self._current.status.is_active:
            logger.info(
                "Task {} already active (status={}), rejecting",
                self._current.id,
                self._current.status.value,
            )
            return False
        return True

    def create_task(self, repo_id: str, prompt: str) -> Optional[str]:
        """Create a task and start the scripted runner for it.

        Returns:
            The new task id, or None when another task is still active.
        """
        if not self._admit():
            return None

        task = Task(repo_id=repo_id, prompt=prompt, id=self._id_factory())
        self._current = task
        self._emit(TaskStarted(task_id=task.id, repo_id=repo_id, prompt=prompt, started_at=now_ms()))
        logger.info("Task created: {} (repo={})", task.id, repo_id)
        self._spawn_runner(task.id, prompt)
        return task.id

    def start_external_task(
        self,
        repo_id: str,
        prompt: str,
        task_id: Optional[str] = None,
        *,
        has_image: bool = False,
    ) -> Optional[str]:
        """Register a task driven by an outside agent (no in-process runner).

        Admission follows the same rule as :meth:`create_task`.
        """
        if not self._admit():
            return None

        task = Task(
            repo_id=repo_id,
            prompt=prompt,
            id=task_id or f"agent-{now_ms()}",
            external=True,
        )
        self._current = task
        self._emit(
            TaskStarted(
                task_id=task.id,
                repo_id=repo_id,
                prompt=prompt,
                started_at=now_ms(),
                has_image=has_image,
            )
        )
        return task.id

    # -- cancellation ------------------------------------------------------

    def cancel_task(self, task_id: str) -> bool:
        """Cancel the current task. Returns False if *task_id* is not current."""
        if self._current is None or self._current.id != task_id:
            return False

        self._cancelled.add(task_id)
        self._abort_current()
        self._emit(_cancelled_event(task_id))
        self._release_unowned(task_id)
        logger.info("Task cancelled: {}", task_id)
        return True

    def cancel_external_task(self, task_id: str) -> bool:
        """Cancel a task reported by an outside caller. Always succeeds.

        When *task_id* is the current task, it is cancelled like
        :meth:`cancel_task` and the id stays marked until its runner unwinds.
        An id nobody is running is unmarked straight away.
        """
        self._cancelled.add(task_id)
        self._emit(_cancelled_event(task_id))

        if self._current is not None and self._current.id == task_id:
            self._abort_current()
        self._release_unowned(task_id)
        logger.info("External task cancelled: {}", task_id)
        return True

    def _abort_current(self) -> None:
        self._resolve_pending(CANCELLED_CHOICE)
        self._set_status(TaskStatus.ERROR)
        self._current = None

    def _release_unowned(self, task_id: str) -> None:
        if task_id not in self._runners:
            self._cancelled.discard(task_id)

    # -- input -------------------------------------------------------------

    def submit_choice(self, task_id: str, choice_id: str) -> bool:
        """Answer the pending question of the current task.

        The resumed runner moves the task back to ``running``.
        """
        if self._current is None or self._current.id != task_id:
            return False
        if self._current.status is not TaskStatus.WAITING_INPUT:
            return False
        if choice_id == CANCELLED_CHOICE:
            return False
        self._resolve_pending(choice_id)
        return True

    async def wait_for_input(self, task_id: str, question: str, choices: Sequence[Choice]) -> str:
        """Ask a question and suspend until a choice or a cancellation arrives.

        Returns:
            The chosen id, or :data:`CANCELLED_CHOICE`.
        """
        # A stale waiter can only exist if a run misbehaved; unblock it.
        self._resolve_pending(CANCELLED_CHOICE)

        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._pending_choice = future
        if self._matches(task_id):
            self._set_status(TaskStatus.WAITING_INPUT)
        self._emit(
            TaskNeedInput(
                task_id=task_id,
                question=question,
                choices=[ChoiceItem(id=c.id, label=c.label) for c in choices],
            )
        )
        return await future

    def request_input(self, task_id: str, question: str, choices: Sequence[Choice]) -> None:
        """Relay a question from an outside agent. No continuation is registered."""
        self._emit(
            TaskNeedInput(
                task_id=task_id,
                question=question,
                choices=[ChoiceItem(id=c.id, label=c.label) for c in choices],
            )
        )

    def _resolve_pending(self, value: str) -> None:
        future, self._pending_choice = self._pending_choice, None
        if future is not None and not future.done():
            future.set_result(value)

    # -- progress ----------------------------------------------------------

    def log(
        self,
        task_id: str,
        level: LogLevel,
        message: str,
        message_key: Optional[str] = None,
        message_params: Optional[MessageParams] = None,
    ) -> None:
        """Record a log line for *task_id* and broadcast it.

        Only the current task keeps the entry; the event is always sent.
        """
        if self._current is not None and self._current.id == task_id:
            self._current.append_log(
                TaskLog(level=level, message=message, message_key=message_key, message_params=message_params)
            )
        self._emit(
            TaskLogged(
                task_id=task_id,
                level=level,
                message=message,
                message_key=message_key,
                message_params=message_params,
            )
        )

    def report_progress(self, task_id: str, current: float, total: float, label: Optional[str] = None) -> None:
        self._emit(TaskProgress(task_id=task_id, current=current, total=total, label=label))

    def mark_running(self, task_id: str) -> None:
        if self._matches(task_id):
            self._set_status(TaskStatus.RUNNING)

    def mark_done(
        self,
        task_id: str,
        summary: str,
        *,
        meta: Optional[DoneMeta] = None,
        summary_key: Optional[str] = None,
    ) -> None:
        if self._matches(task_id):
            self._current.summary = summary
            self._set_status(TaskStatus.DONE)
            self._current = None
        self._emit(TaskDone(task_id=task_id, summary=summary, summary_key=summary_key, meta=meta or DoneMeta()))

    def mark_failed(self, task_id: str, message: str) -> None:
        if self._matches(task_id):
            self._set_status(TaskStatus.ERROR)
            self._current = None
        self._emit(TaskFailed(task_id=task_id, message=message))

    def complete_external_task(
        self,
        task_id: str,
        summary: str,
        *,
        changed_files: Optional[float] = None,
        summary_key: Optional[str] = None,
    ) -> None:
        """Report completion from an outside agent.

        Tasks driven by the scripted runner are left to finish on their own;
        the event is still broadcast.
        """
        meta = DoneMeta(changed_files=changed_files)
        if self._current is not None and self._current.id == task_id and not self._current.external:
            self._emit(TaskDone(task_id=task_id, summary=summary, summary_key=summary_key, meta=meta))
            return
        self.mark_done(task_id, summary, meta=meta, summary_key=summary_key)

    # -- runner bookkeeping ------------------------------------------------

    def _spawn_runner(self, task_id: str, prompt: str) -> None:
        runner = self._runner_factory(self, delay_scale=self._delay_scale)
        handle = asyncio.get_running_loop().create_task(runner.run(task_id, prompt), name=f"runner-{task_id}")
        self._runners[task_id] = handle
        handle.add_done_callback(lambda _handle, tid=task_id: self.finish_run(tid))

    def finish_run(self, task_id: str) -> None:
        """Drop the runner handle and cancellation mark for *task_id*. Idempotent."""
        self._runners.pop(task_id, None)
        self._cancelled.discard(task_id)

    async def shutdown(self) -> None:
        """Cancel runners still in flight and wait for them to unwind."""
        handles = list(self._runners.values())
        for handle in handles:
            handle.cancel()
        if handles:
            await asyncio.gather(*handles, return_exceptions=True)
        self._resolve_pending(CANCELLED_CHOICE)

    # -- internals ---------------------------------------------------------

    def _matches(self, task_id: str) -> bool:
        return self._current is not None and self._current.id == task_id

    def _set_status(self, status: TaskStatus) -> None:
        if self._current is not None:
            self._current.set_status(status)

    def _emit(self, event: DaemonEvent) -> None:
        try:
            self._broadcast(event)
        except Exception as exc:
            logger.warning("Broadcast of {} for {} failed: {}", event.type, event.task_id, exc)


def _cancelled_event(task_id: str) -> TaskFailed:
    return TaskFailed(task_id=task_id, message=CANCELLED_MESSAGE, message_key=CANCELLED_MESSAGE_KEY)
