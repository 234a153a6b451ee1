"""Task endpoints used by the browser extension.

Creating a task starts the scripted runner; the extension then follows the
task over the push channel and answers its question here.
"""

from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, HTTPException, Request
from loguru import logger

from ..constants import MAX_LABEL_LENGTH, MAX_PROMPT_LENGTH, MAX_TASK_ID_LENGTH
from ..task_engine.coordinator import TaskCoordinator
from ..validation import first_error, validate_optional_string, validate_string
from .models import (
    CurrentTaskResponse,
    OkResponse,
    TaskCreatedResponse,
    raise_for_error,
    read_json_body,
)


def create_task_router(get_coordinator: Callable[[], TaskCoordinator]) -> APIRouter:
    router = APIRouter(prefix="/tasks", tags=["tasks"])

    @router.post("", response_model=TaskCreatedResponse)
    async def create_task(request: Request) -> TaskCreatedResponse:
        body = await read_json_body(request)
        prompt = body.get("prompt")
        repo_id = body.get("repoId")
        raise_for_error(
            first_error(
                validate_string(prompt, "prompt", MAX_PROMPT_LENGTH),
                validate_optional_string(repo_id, "repoId", MAX_TASK_ID_LENGTH),
            )
        )
        repo_id = repo_id or "default"

        task_id = get_coordinator().create_task(repo_id, prompt)
        if task_id is None:
            raise HTTPException(status_code=409, detail="A task is already running")
        return TaskCreatedResponse(task_id=task_id)

    @router.get("/current", response_model=CurrentTaskResponse)
    async def current_task() -> CurrentTaskResponse:
        task = get_coordinator().get_current_task()
        return CurrentTaskResponse(task=task.to_dict() if task else None)

    @router.post("/{task_id}/cancel", response_model=OkResponse)
    async def cancel_task(task_id: str) -> OkResponse:
        if not get_coordinator().cancel_task(task_id):
            raise HTTPException(status_code=404, detail="Task not found")
        return OkResponse()

    @router.post("/{task_id}/choice", response_model=OkResponse)
    async def submit_choice(task_id: str, request: Request) -> OkResponse:
        body = await read_json_body(request)
        choice_id = body.get("choiceId")
        raise_for_error(validate_string(choice_id, "choiceId", MAX_LABEL_LENGTH))

        if not get_coordinator().submit_choice(task_id, choice_id):
            raise HTTPException(status_code=404, detail="Task not found or not waiting for input")
        logger.info("Choice {} submitted for {}", choice_id, task_id)
        return OkResponse()

    return router
