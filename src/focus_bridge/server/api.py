"""FastAPI application for the focus-bridge daemon."""

from __future__ import annotations

import asyncio
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import DaemonConfig
from ..constants import (
    EXTENSION_SCHEME,
    MAX_CONTEXT_LENGTH,
    MAX_MESSAGE_LENGTH,
    MAX_URL_LENGTH,
    VERSION,
)
from ..context_bridge import BrowserContext, ContextQueue
from ..focus import FocusSettings, FocusSettingsStore, IdeFocuser
from ..git_utils import GitBranchCache
from ..logging_utils import truncate
from ..task_engine.coordinator import TaskCoordinator
from ..validation import first_error, validate_optional_string, validate_string
from .agent_api import create_agent_router
from .auth import RequestAuthorizer
from .models import (
    ContextDrainResponse,
    ContextQueuedResponse,
    ErrorResponse,
    FocusNowResponse,
    FocusSettingsResponse,
    HealthResponse,
    RepoInfo,
    raise_for_error,
    read_json_body,
)
from .task_api import create_task_router
from .ws_hub import WebSocketHub


_CONTEXT_STRATEGIES = ("selection", "semantic", "density", "fallback")


def build_origin_regex(allowed_extension_id: Optional[str] = None) -> str:
    """Origins the browser may call from: local pages and the extension."""
    local = r"http://(?:127\.0\.0\.1|localhost)(?::\d+)?"
    if allowed_extension_id:
        extension = re.escape(EXTENSION_SCHEME + allowed_extension_id)
    else:
        extension = re.escape(EXTENSION_SCHEME) + r"[A-Za-z]{32}"
    return f"^(?:{local}|{extension})$"


def create_app(
    config: Optional[DaemonConfig] = None,
    *,
    coordinator: Optional[TaskCoordinator] = None,
    project_dir: Optional[Path] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Daemon configuration; defaults apply when omitted.
        coordinator: Task coordinator to serve; one publishing to the
            WebSocket hub is built when omitted.
        project_dir: Directory reported by ``/repos`` and ``/health``.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    config = config or DaemonConfig()
    project_dir = (project_dir or Path.cwd()).resolve()

    authorizer = RequestAuthorizer(config.auth_secret, config.allowed_extension_id)
    hub = WebSocketHub(authorizer, max_connections=config.max_ws_connections)
    if coordinator is None:
        coordinator = TaskCoordinator(hub.publish_sync, delay_scale=config.demo_delay_scale)
    focus_store = FocusSettingsStore(
        FocusSettings(
            enabled=config.focus_enabled,
            target_app=config.focus_app,
            focus_on_need_input=config.focus_on_need_input,
            focus_on_done=config.focus_on_done,
        )
    )
    focuser = IdeFocuser(focus_store, config.focus_script)
    contexts = ContextQueue(config.context_limit)
    branch_cache = GitBranchCache(project_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        hub.attach_loop(asyncio.get_running_loop())
        mode = "secret required" if config.auth_secret else "open (no secret)"
        logger.info("focus-bridge {} listening for {} [auth: {}]", VERSION, project_dir, mode)
        yield
        await coordinator.shutdown()
        await hub.close_all()

    app = FastAPI(
        title="Focus Bridge",
        description="Local bridge between a browser extension and coding agents",
        version=VERSION,
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_origin_regex=build_origin_regex(config.allowed_extension_id),
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        )

    app.state.config = config
    app.state.coordinator = coordinator
    app.state.hub = hub
    app.state.focus_store = focus_store
    app.state.focuser = focuser
    app.state.contexts = contexts

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        body = ErrorResponse(error=str(exc.detail))
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(by_alias=True),
            headers=getattr(exc, "headers", None),
        )

    def _get_coordinator() -> TaskCoordinator:
        return app.state.coordinator

    app.include_router(create_task_router(_get_coordinator))
    app.include_router(create_agent_router(_get_coordinator, authorizer, focuser))

    bearer = [Depends(authorizer.require_bearer)]

    # -- Health ----------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        branch = await asyncio.to_thread(branch_cache.get)
        return HealthResponse(version=VERSION, git_branch=branch)

    @app.get("/repos", response_model=list[RepoInfo])
    async def repos() -> list[RepoInfo]:
        return [RepoInfo(repo_id="default", name=project_dir.name, path=str(project_dir))]

    # -- Focus -----------------------------------------------------------------

    @app.get("/focus/settings")
    async def get_focus_settings() -> dict[str, Any]:
        return focus_store.get().to_wire()

    @app.post("/focus/settings", response_model=FocusSettingsResponse, dependencies=bearer)
    async def update_focus_settings(request: Request) -> FocusSettingsResponse:
        body = await read_json_body(request)
        try:
            settings = focus_store.update(body)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return FocusSettingsResponse(settings=settings.to_wire())

    @app.post("/focus/now", response_model=FocusNowResponse, dependencies=bearer)
    async def focus_now() -> FocusNowResponse:
        await focuser.focus_async()
        return FocusNowResponse(app=focus_store.get().target_app)

    # -- Browser context -------------------------------------------------------

    @app.post(
        "/context",
        response_model=ContextQueuedResponse,
        dependencies=[Depends(authorizer.require_trusted_client)],
    )
    async def push_context(request: Request) -> ContextQueuedResponse:
        body = await read_json_body(request)
        strategy = body.get("strategy")
        raise_for_error(
            first_error(
                validate_string(body.get("url"), "url", MAX_URL_LENGTH),
                validate_string(body.get("content"), "content", MAX_CONTEXT_LENGTH),
                validate_optional_string(body.get("title"), "title", MAX_MESSAGE_LENGTH),
                validate_optional_string(body.get("selectedText"), "selectedText", MAX_CONTEXT_LENGTH),
            )
        )
        if strategy is not None and strategy not in _CONTEXT_STRATEGIES:
            raise_for_error(f"strategy must be one of: {', '.join(_CONTEXT_STRATEGIES)}")

        fields = {k: body[k] for k in ("url", "title", "content", "selectedText", "strategy") if body.get(k)}
        try:
            context = BrowserContext.model_validate(fields)
        except ValidationError:
            raise HTTPException(status_code=400, detail="Invalid context payload")
        queued = contexts.push(context)
        logger.info("Context queued from {} ({} chars)", truncate(context.url), len(context.content))
        return ContextQueuedResponse(queued=queued)

    @app.get("/context", response_model=ContextDrainResponse, dependencies=bearer)
    async def drain_context() -> ContextDrainResponse:
        drained = contexts.drain()
        return ContextDrainResponse(
            contexts=[c.model_dump(by_alias=True, exclude_none=True) for c in drained]
        )

    # -- Push channel ----------------------------------------------------------

    @app.websocket("/ws")
    async def push_channel(websocket: WebSocket) -> None:
        await hub.handle_connection(websocket)

    return app


def create_app_from_env() -> FastAPI:
    """App factory for ``uvicorn --factory`` (used by ``server --reload``)."""
    return create_app(DaemonConfig.from_env())
