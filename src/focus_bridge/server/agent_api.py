"""Agent endpoints: an outside coding agent reports its task through these.

Every route except ``/agent/cancel`` requires the bearer secret when one is
configured. Agent text is redacted before it reaches the daemon log.
"""

from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from loguru import logger

from ..constants import (
    LOG_LEVELS,
    MAX_LABEL_LENGTH,
    MAX_MESSAGE_LENGTH,
    MAX_PROMPT_LENGTH,
    MAX_SUMMARY_LENGTH,
    MAX_TASK_ID_LENGTH,
)
from ..focus import IdeFocuser
from ..logging_utils import redact_log_message, truncate
from ..task_engine.coordinator import TaskCoordinator
from ..task_engine.model import Choice
from ..validation import (
    first_error,
    validate_choices,
    validate_number,
    validate_optional_string,
    validate_string,
)
from .auth import RequestAuthorizer
from .models import AgentStartResponse, OkResponse, raise_for_error, read_json_body


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_agent_router(
    get_coordinator: Callable[[], TaskCoordinator],
    authorizer: RequestAuthorizer,
    focuser: IdeFocuser,
) -> APIRouter:
    router = APIRouter(prefix="/agent", tags=["agent"])
    bearer = [Depends(authorizer.require_bearer)]

    @router.post("/start", response_model=AgentStartResponse, dependencies=bearer)
    async def start(request: Request) -> AgentStartResponse:
        body = await read_json_body(request)
        prompt = body.get("prompt")
        task_id = body.get("taskId")
        repo_id = body.get("repoId") or "default"
        raise_for_error(
            first_error(
                validate_string(prompt, "prompt", MAX_PROMPT_LENGTH),
                validate_optional_string(task_id, "taskId", MAX_TASK_ID_LENGTH),
                validate_string(repo_id, "repoId", MAX_TASK_ID_LENGTH),
            )
        )

        started = get_coordinator().start_external_task(
            repo_id,
            prompt,
            task_id or None,
            has_image=bool(body.get("image")),
        )
        if started is None:
            raise HTTPException(status_code=409, detail="A task is already running")
        logger.info("[Agent] Task started: {} ({})", started, truncate(prompt, 50))
        return AgentStartResponse(task_id=started)

    @router.post("/log", response_model=OkResponse, dependencies=bearer)
    async def log(request: Request) -> OkResponse:
        body = await read_json_body(request)
        task_id = body.get("taskId")
        message = body.get("message")
        level = body.get("level") or "info"
        if level == "warning":
            level = "warn"
        raise_for_error(
            first_error(
                validate_string(task_id, "taskId", MAX_TASK_ID_LENGTH),
                validate_string(message, "message", MAX_MESSAGE_LENGTH),
            )
        )
        if level not in LOG_LEVELS:
            raise_for_error(f"level must be one of: {', '.join(LOG_LEVELS)}")

        logger.info("[Agent] {}", redact_log_message(message))
        get_coordinator().log(task_id, level, message)
        return OkResponse()

    @router.post("/need-input", response_model=OkResponse, dependencies=bearer)
    async def need_input(request: Request, background: BackgroundTasks) -> OkResponse:
        body = await read_json_body(request)
        task_id = body.get("taskId")
        question = body.get("question")
        raw_choices = body.get("choices")
        raise_for_error(
            first_error(
                validate_string(task_id, "taskId", MAX_TASK_ID_LENGTH),
                validate_string(question, "question", MAX_MESSAGE_LENGTH),
                validate_choices(raw_choices),
            )
        )

        choices = [Choice(id=c["id"], label=c["label"]) for c in raw_choices or []]
        logger.info("[Agent] Need input: {}", truncate(question, 50))
        get_coordinator().request_input(task_id, question, choices)
        background.add_task(focuser.on_need_input)
        return OkResponse()

    @router.post("/done", response_model=OkResponse, dependencies=bearer)
    async def done(request: Request, background: BackgroundTasks) -> OkResponse:
        body = await read_json_body(request)
        task_id = body.get("taskId")
        summary = body.get("summary")
        files_modified = body.get("filesModified")
        raise_for_error(
            first_error(
                validate_string(task_id, "taskId", MAX_TASK_ID_LENGTH),
                validate_optional_string(summary, "summary", MAX_SUMMARY_LENGTH),
                validate_number(files_modified, "filesModified") if files_modified is not None else None,
            )
        )

        summary = summary or "Task completed"
        logger.info("[Agent] Done: {}", truncate(summary, 50))
        get_coordinator().complete_external_task(task_id, summary, changed_files=files_modified)
        background.add_task(focuser.on_done)
        return OkResponse()

    @router.post("/cancel", response_model=OkResponse)
    async def cancel(request: Request) -> OkResponse:
        body = await read_json_body(request)
        task_id = body.get("taskId")
        raise_for_error(validate_string(task_id, "taskId", MAX_TASK_ID_LENGTH))

        get_coordinator().cancel_external_task(task_id)
        return OkResponse()

    @router.post("/progress", response_model=OkResponse, dependencies=bearer)
    async def progress(request: Request) -> OkResponse:
        body = await read_json_body(request)
        task_id = body.get("taskId")
        current = body.get("current")
        total = body.get("total")
        label = body.get("label")
        raise_for_error(
            first_error(
                validate_string(task_id, "taskId", MAX_TASK_ID_LENGTH),
                validate_number(current, "current"),
                validate_number(total, "total"),
                validate_optional_string(label, "label", MAX_LABEL_LENGTH),
            )
        )

        get_coordinator().report_progress(task_id, current, total, label or None)
        return OkResponse()

    return router
