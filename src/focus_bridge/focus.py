"""IDE focus settings and the command that raises the IDE window."""

from __future__ import annotations

import asyncio
import subprocess
import sys
from pathlib import Path
from typing import Any, Mapping, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .constants import ALLOWED_TARGET_APPS


class FocusSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    enabled: bool = True
    target_app: str = "Cursor"
    focus_on_need_input: bool = True
    focus_on_done: bool = True

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


_BOOL_FIELDS = {
    "enabled": "enabled",
    "focusOnNeedInput": "focus_on_need_input",
    "focusOnDone": "focus_on_done",
}


def is_valid_target_app(app: str) -> bool:
    return app in ALLOWED_TARGET_APPS


class FocusSettingsStore:
    """In-memory focus settings; lost on restart."""

    def __init__(self, initial: Optional[FocusSettings] = None) -> None:
        self._settings = initial or FocusSettings()

    def get(self) -> FocusSettings:
        return self._settings.model_copy()

    def update(self, changes: Mapping[str, Any]) -> FocusSettings:
        """Apply a partial update given in wire (camelCase) form.

        Raises:
            ValueError: A field has the wrong type or the target app is not
                allow-listed. Nothing is applied in that case.
        """
        updates: dict[str, Any] = {}
        for wire_name, attr in _BOOL_FIELDS.items():
            if wire_name not in changes:
                continue
            value = changes[wire_name]
            if not isinstance(value, bool):
                raise ValueError(f"{wire_name} must be a boolean")
            updates[attr] = value

        if "targetApp" in changes:
            app = changes["targetApp"]
            if not isinstance(app, str):
                raise ValueError("targetApp must be a string")
            if not is_valid_target_app(app):
                allowed = ", ".join(sorted(ALLOWED_TARGET_APPS))
                raise ValueError(f'Invalid targetApp: "{app}". Allowed values: {allowed}')
            updates["target_app"] = app

        self._settings = self._settings.model_copy(update=updates)
        logger.info("Focus settings updated: {}", self._settings.to_wire())
        return self.get()


class IdeFocuser:
    """Bring the configured IDE to the foreground.

    Runs ``<script> <app>`` when a focus script is configured, otherwise falls
    back to AppleScript on macOS. Failures are logged, never raised.
    """

    def __init__(self, store: FocusSettingsStore, script: Optional[Path] = None) -> None:
        self._store = store
        self._script = script

    def build_command(self, app: str) -> Optional[list[str]]:
        if self._script is not None:
            return [str(self._script), app]
        if sys.platform == "darwin":
            return ["osascript", "-e", f'tell application "{app}" to activate']
        return None

    def focus(self) -> bool:
        settings = self._store.get()
        if not settings.enabled:
            return False
        app = settings.target_app
        if not is_valid_target_app(app):
            logger.error("Focus: invalid target app {!r}", app)
            return False

        cmd = self.build_command(app)
        if cmd is None:
            logger.warning("Focus: no focus script configured for platform {}", sys.platform)
            return False

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=10, check=False)
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.error("Focus failed: {}", exc)
            return False
        if result.returncode != 0:
            logger.error("Focus failed: {}", (result.stderr or "").strip() or f"exit {result.returncode}")
            return False
        logger.info("Focus: {}", (result.stdout or "").strip() or app)
        return True

    async def focus_async(self) -> bool:
        return await asyncio.to_thread(self.focus)

    async def on_need_input(self) -> bool:
        if not self._store.get().focus_on_need_input:
            return False
        return await self.focus_async()

    async def on_done(self) -> bool:
        if not self._store.get().focus_on_done:
            return False
        return await self.focus_async()
