"""Tests for the git branch cache."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

from focus_bridge.git_utils import GitBranchCache


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _completed(stdout: str, returncode: int = 0) -> MagicMock:
    return MagicMock(returncode=returncode, stdout=stdout, stderr="")


def test_branch_is_cached_for_ttl(tmp_path: Path) -> None:
    clock = _Clock()
    cache = GitBranchCache(tmp_path, ttl=300, clock=clock)
    with patch("focus_bridge.git_utils.subprocess.run", return_value=_completed("main\n")) as run:
        assert cache.get() == "main"
        clock.now = 299
        assert cache.get() == "main"
        assert run.call_count == 1
        clock.now = 300
        cache.get()
        assert run.call_count == 2
    assert run.call_args.args[0] == ["git", "branch", "--show-current"]
    assert run.call_args.kwargs["cwd"] == tmp_path


def test_not_a_repository(tmp_path: Path) -> None:
    with patch("focus_bridge.git_utils.subprocess.run", return_value=_completed("", returncode=128)):
        assert GitBranchCache(tmp_path).get() is None


def test_detached_head_has_no_branch(tmp_path: Path) -> None:
    with patch("focus_bridge.git_utils.subprocess.run", return_value=_completed("\n")):
        assert GitBranchCache(tmp_path).get() is None


def test_git_missing(tmp_path: Path) -> None:
    with patch("focus_bridge.git_utils.subprocess.run", side_effect=FileNotFoundError("git")):
        assert GitBranchCache(tmp_path).get() is None
    with patch("focus_bridge.git_utils.subprocess.run", side_effect=subprocess.TimeoutExpired("git", 5)):
        assert GitBranchCache(tmp_path).get() is None
