"""Tests for IDE focus settings and the focus command."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from focus_bridge.focus import FocusSettings, FocusSettingsStore, IdeFocuser


class TestSettingsStore:
    def test_defaults(self) -> None:
        assert FocusSettingsStore().get().to_wire() == {
            "enabled": True,
            "targetApp": "Cursor",
            "focusOnNeedInput": True,
            "focusOnDone": True,
        }

    def test_partial_update(self) -> None:
        store = FocusSettingsStore()
        store.update({"focusOnDone": False})
        settings = store.get()
        assert settings.focus_on_done is False
        assert settings.enabled is True

    def test_invalid_update_applies_nothing(self) -> None:
        store = FocusSettingsStore()
        with pytest.raises(ValueError, match="Invalid targetApp"):
            store.update({"enabled": False, "targetApp": "Notepad"})
        assert store.get().enabled is True

    @pytest.mark.parametrize("value", ["true", 1, None])
    def test_booleans_must_be_booleans(self, value) -> None:
        with pytest.raises(ValueError, match="focusOnNeedInput must be a boolean"):
            FocusSettingsStore().update({"focusOnNeedInput": value})

    def test_get_returns_copy(self) -> None:
        store = FocusSettingsStore()
        store.get().enabled = False
        assert store.get().enabled is True


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


class TestIdeFocuser:
    def test_runs_script_with_app(self, tmp_path: Path) -> None:
        script = tmp_path / "focus-ide.sh"
        focuser = IdeFocuser(FocusSettingsStore(FocusSettings(target_app="VSCode")), script)
        with patch("focus_bridge.focus.subprocess.run", return_value=_completed(stdout="ok")) as run:
            assert focuser.focus() is True
        assert run.call_args.args[0] == [str(script), "VSCode"]

    def test_disabled_does_nothing(self, tmp_path: Path) -> None:
        focuser = IdeFocuser(FocusSettingsStore(FocusSettings(enabled=False)), tmp_path / "s.sh")
        with patch("focus_bridge.focus.subprocess.run") as run:
            assert focuser.focus() is False
        run.assert_not_called()

    def test_app_outside_allow_list_is_refused(self, tmp_path: Path) -> None:
        # a settings object built directly bypasses the store's validation
        focuser = IdeFocuser(FocusSettingsStore(FocusSettings(target_app="evil")), tmp_path / "s.sh")
        with patch("focus_bridge.focus.subprocess.run") as run:
            assert focuser.focus() is False
        run.assert_not_called()

    def test_failures_are_logged_not_raised(self, tmp_path: Path) -> None:
        focuser = IdeFocuser(FocusSettingsStore(), tmp_path / "s.sh")
        with patch("focus_bridge.focus.subprocess.run", side_effect=OSError("no such file")):
            assert focuser.focus() is False
        with patch("focus_bridge.focus.subprocess.run", side_effect=subprocess.TimeoutExpired("s.sh", 10)):
            assert focuser.focus() is False
        with patch("focus_bridge.focus.subprocess.run", return_value=_completed(returncode=1, stderr="denied")):
            assert focuser.focus() is False

    def test_applescript_fallback(self) -> None:
        focuser = IdeFocuser(FocusSettingsStore())
        with patch("focus_bridge.focus.sys.platform", "darwin"):
            assert focuser.build_command("Cursor") == ["osascript", "-e", 'tell application "Cursor" to activate']
        with patch("focus_bridge.focus.sys.platform", "linux"):
            assert focuser.build_command("Cursor") is None

    @pytest.mark.anyio
    async def test_triggers_respect_flags(self, tmp_path: Path) -> None:
        store = FocusSettingsStore(FocusSettings(focus_on_need_input=False))
        focuser = IdeFocuser(store, tmp_path / "s.sh")
        with patch("focus_bridge.focus.subprocess.run", return_value=_completed()) as run:
            assert await focuser.on_need_input() is False
            assert await focuser.on_done() is True
        assert run.call_count == 1
