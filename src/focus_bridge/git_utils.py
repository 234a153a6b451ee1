"""Provide the small git helpers used by the health endpoint."""

from __future__ import annotations

import subprocess
import time
from pathlib import Path
from typing import Callable, Optional

from loguru import logger


BRANCH_CACHE_TTL = 5 * 60.0


def _git_current_branch(project_dir: Path) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", "branch", "--show-current"],
            cwd=project_dir,
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("git branch lookup failed: {}", exc)
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


class GitBranchCache:
    """Current branch of *project_dir*, re-read at most every ``ttl`` seconds."""

    def __init__(
        self,
        project_dir: Path,
        ttl: float = BRANCH_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.project_dir = project_dir
        self._ttl = ttl
        self._clock = clock
        self._branch: Optional[str] = None
        self._fetched_at: Optional[float] = None

    def get(self) -> Optional[str]:
        now = self._clock()
        if self._fetched_at is None or now - self._fetched_at >= self._ttl:
            self._branch = _git_current_branch(self.project_dir)
            self._fetched_at = now
        return self._branch
