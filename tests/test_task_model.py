"""Tests for the task model."""

from __future__ import annotations

import re

from focus_bridge.task_engine.model import (
    Task,
    TaskLog,
    TaskStatus,
    generate_task_id,
)


def test_generate_task_id_format() -> None:
    ids = {generate_task_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(re.fullmatch(r"t_[0-9a-f]{8}", tid) for tid in ids)


def test_active_statuses() -> None:
    assert TaskStatus.RUNNING.is_active
    assert TaskStatus.WAITING_INPUT.is_active
    assert not TaskStatus.DONE.is_active
    assert not TaskStatus.ERROR.is_active


def test_log_buffer_keeps_last_100_in_order() -> None:
    task = Task(repo_id="default", prompt="p")
    for i in range(101):
        task.append_log(TaskLog(level="info", message=f"log {i}"))
    assert len(task.logs) == 100
    messages = [entry.message for entry in task.logs]
    assert messages[0] == "log 1"
    assert messages[-1] == "log 100"
    assert messages == [f"log {i}" for i in range(1, 101)]


def test_to_dict_is_camel_case() -> None:
    task = Task(repo_id="repoA", prompt="Fix bug", id="t_00000001")
    task.append_log(TaskLog(level="info", message="hi", message_key="k", message_params={"n": 1}))
    data = task.to_dict()
    assert data["id"] == "t_00000001"
    assert data["repoId"] == "repoA"
    assert data["status"] == "running"
    assert data["external"] is False
    assert "summary" not in data
    assert data["logs"][0]["messageKey"] == "k"
    assert data["logs"][0]["messageParams"] == {"n": 1}


def test_set_status_touches_updated_at() -> None:
    task = Task(repo_id="r", prompt="p")
    task.updated_at = 0
    task.set_status(TaskStatus.DONE)
    assert task.status is TaskStatus.DONE
    assert task.updated_at > 0
