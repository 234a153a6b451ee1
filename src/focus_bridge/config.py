"""Load daemon configuration from the environment.

The CLI seeds the environment from an optional ``.env`` file before calling
:meth:`DaemonConfig.from_env`; tests build :class:`DaemonConfig` directly.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from .constants import DEFAULT_HOST, DEFAULT_PORT


def _flag(env: Mapping[str, str], name: str, default: bool = True) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() != "false"


def _int(env: Mapping[str, str], default: int, *names: str) -> int:
    for name in names:
        raw = env.get(name)
        if raw:
            try:
                return int(raw)
            except ValueError:
                continue
    return default


def _optional(env: Mapping[str, str], name: str) -> Optional[str]:
    raw = (env.get(name) or "").strip()
    return raw or None


class DaemonConfig(BaseModel):
    """Runtime configuration for the daemon, its hooks and the CLI."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    # Security
    auth_secret: Optional[str] = None
    allowed_extension_id: Optional[str] = None
    allowed_origins: list[str] = Field(default_factory=list)
    max_ws_connections: int = 10

    # IDE focus defaults
    focus_enabled: bool = True
    focus_app: str = "Cursor"
    focus_on_need_input: bool = True
    focus_on_done: bool = True
    focus_script: Optional[Path] = None

    demo_delay_scale: float = 1.0
    context_limit: int = 5
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DaemonConfig":
        env = os.environ if environ is None else environ

        origins = [o.strip() for o in (env.get("ALLOWED_ORIGINS") or "").split(",") if o.strip()]
        script = _optional(env, "FOCUS_SCRIPT")
        try:
            delay_scale = float(env.get("FOCUS_BRIDGE_DEMO_DELAY_SCALE") or 1.0)
        except ValueError:
            delay_scale = 1.0

        return cls(
            host=env.get("FOCUS_BRIDGE_HOST") or DEFAULT_HOST,
            port=_int(env, DEFAULT_PORT, "FOCUS_BRIDGE_PORT", "PORT"),
            auth_secret=_optional(env, "FOCUS_BRIDGE_SECRET"),
            allowed_extension_id=_optional(env, "ALLOWED_EXTENSION_ID"),
            allowed_origins=origins,
            max_ws_connections=_int(env, 10, "FOCUS_BRIDGE_MAX_WS_CONNECTIONS"),
            focus_enabled=_flag(env, "FOCUS_ENABLED"),
            focus_app=env.get("FOCUS_APP") or "Cursor",
            focus_on_need_input=_flag(env, "FOCUS_ON_NEED_INPUT"),
            focus_on_done=_flag(env, "FOCUS_ON_DONE"),
            focus_script=Path(script).expanduser() if script else None,
            demo_delay_scale=max(delay_scale, 0.0),
            context_limit=_int(env, 5, "FOCUS_BRIDGE_CONTEXT_LIMIT"),
            log_level=(env.get("FOCUS_BRIDGE_LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"
