from __future__ import annotations

import argparse
import io
import sys
from pathlib import Path
from typing import Any, Optional

import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .config import DaemonConfig
from .hooks import HOOK_TIMEOUT, run_fetch_context_hook, run_tool_log_hook
from .logging_utils import configure_logging
from .server import create_app

WS_PING_INTERVAL = 30.0
WS_PING_TIMEOUT = 10.0


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _config(args: argparse.Namespace) -> DaemonConfig:
    config = DaemonConfig.from_env()
    updates: dict[str, Any] = {}
    if getattr(args, "host", None):
        updates["host"] = args.host
    if getattr(args, "port", None):
        updates["port"] = args.port
    return config.model_copy(update=updates) if updates else config


def _server(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'focus-bridge[server]'\n")
        return 1

    config = _config(args)
    configure_logging(config.log_level)
    options = dict(
        host=config.host,
        port=config.port,
        ws_ping_interval=WS_PING_INTERVAL,
        ws_ping_timeout=WS_PING_TIMEOUT,
        log_level=config.log_level.lower(),
    )
    if args.reload:
        uvicorn.run("focus_bridge.server.api:create_app_from_env", factory=True, reload=True, **options)
        return 0

    app = create_app(config, project_dir=_resolve_project_dir(args.project_dir))
    uvicorn.run(app, **options)
    return 0


def format_status(health: dict[str, Any], task: Optional[dict[str, Any]], base_url: str) -> str:
    """Render daemon health and the current task as text."""
    console = Console(record=True, width=80, file=io.StringIO())

    console.print()
    console.print(f"[bold]focus-bridge @ {base_url}[/bold]")
    console.print("━" * 80)

    table = Table(show_header=False, box=None)
    table.add_row("Version:", str(health.get("version", "?")))
    table.add_row("Git branch:", str(health.get("gitBranch") or "-"))
    if task:
        table.add_row("Task:", str(task.get("id")))
        table.add_row("Status:", str(task.get("status")))
        table.add_row("Prompt:", str(task.get("prompt", ""))[:60])
    else:
        table.add_row("Task:", "[dim]idle[/dim]")
    console.print(table)

    if task and task.get("logs"):
        console.print("\n[bold]Recent logs:[/bold]")
        for entry in task["logs"][-5:]:
            console.print(f"  [{entry.get('level')}] {entry.get('message')}", markup=False)

    console.print("\n" + "━" * 80)
    return console.export_text()


def _status(args: argparse.Namespace) -> int:
    config = _config(args)
    try:
        with httpx.Client(base_url=config.base_url, timeout=HOOK_TIMEOUT) as client:
            health = client.get("/health").json()
            task = client.get("/tasks/current").json().get("task")
    except (httpx.HTTPError, ValueError) as exc:
        sys.stderr.write(f"Daemon not reachable at {config.base_url}: {exc}\n")
        return 1
    sys.stdout.write(format_status(health, task, config.base_url))
    return 0


def _hook_tool_log(args: argparse.Namespace) -> int:
    run_tool_log_hook(sys.stdin.read(), _config(args))
    return 0


def _hook_fetch_context(args: argparse.Namespace) -> int:
    run_fetch_context_hook(_config(args))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="focus-bridge daemon and agent hooks")
    parser.add_argument("--project-dir", default=None, help="Repository served by the daemon (default: current working directory)")
    parser.add_argument("--env-file", default=None, help="Load environment variables from this file (default: ./.env)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    server = subparsers.add_parser("server", help="Start the daemon")
    server.add_argument("--host", default=None)
    server.add_argument("--port", default=None, type=int)
    server.add_argument("--reload", action="store_true")
    server.set_defaults(func=_server)

    status = subparsers.add_parser("status", help="Show daemon health and the current task")
    status.add_argument("--host", default=None)
    status.add_argument("--port", default=None, type=int)
    status.set_defaults(func=_status)

    hook = subparsers.add_parser("hook", help="Agent hook commands")
    hook_sub = hook.add_subparsers(dest="hook_cmd", required=True)

    tool_log = hook_sub.add_parser("tool-log", help="Report a PreToolUse payload read from stdin")
    tool_log.set_defaults(func=_hook_tool_log)

    fetch_context = hook_sub.add_parser("fetch-context", help="Print queued browser context as hook output")
    fetch_context.set_defaults(func=_hook_fetch_context)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    load_dotenv(args.env_file or Path.cwd() / ".env")
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
