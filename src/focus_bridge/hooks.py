"""Agent hook commands.

``tool-log`` reads a PreToolUse payload from stdin and reports what the agent
is doing to ``/agent/log``. ``fetch-context`` drains the browser context queue
and prints it as UserPromptSubmit hook output. Both stay quiet when the daemon
is unreachable so the agent is never blocked.
"""

from __future__ import annotations

import json
import re
import sys
from typing import Any, Optional, TextIO

import httpx
from loguru import logger
from pydantic import ValidationError

from .config import DaemonConfig
from .constants import HOOK_TASK_ID
from .context_bridge import BrowserContext, format_contexts


HOOK_TIMEOUT = 3.0

_TEST_RE = re.compile(r"test|jest|vitest|pytest", re.IGNORECASE)
_BUILD_RE = re.compile(r"build|compile|tsc", re.IGNORECASE)
_LINT_RE = re.compile(r"lint|eslint|prettier|ruff", re.IGNORECASE)
_GIT_RE = re.compile(r"^git ", re.IGNORECASE)


def _basename(path: Any) -> str:
    if not isinstance(path, str) or not path:
        return "file"
    return path.rstrip("/").rsplit("/", 1)[-1] or "file"


def classify_tool_use(payload: Any) -> Optional[tuple[str, str]]:
    """Map a PreToolUse payload to ``(message, level)``, or None to skip it."""
    if not isinstance(payload, dict):
        return None
    tool = payload.get("tool_name") or "unknown"
    tool_input = payload.get("tool_input")
    if not isinstance(tool_input, dict):
        tool_input = {}

    if tool == "Read":
        return f"📂 Reading {_basename(tool_input.get('file_path'))}...", "info"
    if tool == "Glob":
        return f"🔍 Searching {tool_input.get('pattern') or ''}...", "info"
    if tool == "Grep":
        return f'🔍 Grep "{tool_input.get("pattern") or ""}"...', "info"
    if tool == "Edit":
        return f"✏️ Editing {_basename(tool_input.get('file_path'))}...", "info"
    if tool == "Write":
        return f"📝 Writing {_basename(tool_input.get('file_path'))}...", "info"
    if tool == "Bash":
        cmd = str(tool_input.get("command") or "")[:100]
        if _TEST_RE.search(cmd):
            return "🧪 Running tests...", "info"
        if _BUILD_RE.search(cmd):
            return "🔨 Building...", "info"
        if _LINT_RE.search(cmd):
            return "✨ Linting...", "info"
        if _GIT_RE.search(cmd):
            return "🌿 Git operation...", "info"
        return "Running command...", "command"
    if tool == "Task":
        return f"🔄 {tool_input.get('description') or 'subtask'}", "info"
    if tool in ("WebSearch", "WebFetch"):
        return "🌐 Web search...", "info"
    return None


def _headers(config: DaemonConfig) -> dict[str, str]:
    if config.auth_secret:
        return {"Authorization": f"Bearer {config.auth_secret}"}
    return {}


def run_tool_log_hook(raw: str, config: DaemonConfig, client: Optional[httpx.Client] = None) -> bool:
    """Post the classified tool use to the daemon.

    Returns:
        True if the daemon accepted the log line.
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return False
    classified = classify_tool_use(payload)
    if classified is None:
        return False
    message, level = classified

    client = client or httpx.Client(timeout=HOOK_TIMEOUT)
    try:
        with client:
            response = client.post(
                f"{config.base_url}/agent/log",
                json={"taskId": HOOK_TASK_ID, "message": message, "level": level},
                headers=_headers(config),
            )
    except httpx.HTTPError as exc:
        logger.debug("tool-log hook: daemon unreachable: {}", exc)
        return False
    return response.is_success


def fetch_context_output(config: DaemonConfig, client: Optional[httpx.Client] = None) -> Optional[dict[str, Any]]:
    """Drain queued browser context and build the hook output, if any."""
    client = client or httpx.Client(timeout=HOOK_TIMEOUT)
    try:
        with client:
            response = client.get(f"{config.base_url}/context", headers=_headers(config))
    except httpx.HTTPError as exc:
        logger.debug("fetch-context hook: daemon unreachable: {}", exc)
        return None
    if not response.is_success:
        return None

    try:
        raw_contexts = response.json().get("contexts") or []
        contexts = [BrowserContext.model_validate(item) for item in raw_contexts]
    except (ValueError, AttributeError, ValidationError) as exc:
        logger.debug("fetch-context hook: unexpected response: {}", exc)
        return None

    additional = format_contexts(contexts)
    if additional is None:
        return None
    return {
        "hookSpecificOutput": {
            "hookEventName": "UserPromptSubmit",
            "additionalContext": additional,
        }
    }


def run_fetch_context_hook(
    config: DaemonConfig,
    out: Optional[TextIO] = None,
    client: Optional[httpx.Client] = None,
) -> bool:
    """Print the hook output to *out* (stdout). Prints nothing when empty."""
    output = fetch_context_output(config, client)
    if output is None:
        return False
    print(json.dumps(output), file=out or sys.stdout)
    return True
