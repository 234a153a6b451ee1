"""Pydantic models for API responses, plus request body helpers."""

from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import HTTPException, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..constants import MAX_BODY_BYTES


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OkResponse(_WireModel):
    ok: bool = True


class ErrorResponse(_WireModel):
    ok: bool = False
    error: str


class HealthResponse(_WireModel):
    """Daemon liveness."""

    ok: bool = True
    version: str
    git_branch: Optional[str] = None


class RepoInfo(_WireModel):
    repo_id: str
    name: str
    path: str


class TaskCreatedResponse(_WireModel):
    task_id: str


class CurrentTaskResponse(_WireModel):
    task: Optional[dict[str, Any]] = None


class AgentStartResponse(OkResponse):
    task_id: str


class FocusSettingsResponse(OkResponse):
    settings: dict[str, Any]


class FocusNowResponse(OkResponse):
    app: str


class ContextQueuedResponse(OkResponse):
    queued: int


class ContextDrainResponse(_WireModel):
    contexts: list[dict[str, Any]]


async def read_json_body(request: Request) -> dict[str, Any]:
    """Parse the request body as a JSON object or answer 400.

    Bodies over ``MAX_BODY_BYTES`` answer 413, checked against
    ``Content-Length`` first and then while the body streams in.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > MAX_BODY_BYTES:
        raise HTTPException(status_code=413, detail="Request body too large")

    raw = bytearray()
    async for chunk in request.stream():
        raw.extend(chunk)
        if len(raw) > MAX_BODY_BYTES:
            raise HTTPException(status_code=413, detail="Request body too large")

    try:
        data = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    return data


def raise_for_error(error: Optional[str]) -> None:
    """Turn a validation message into a 400 response."""
    if error:
        raise HTTPException(status_code=400, detail=error)
