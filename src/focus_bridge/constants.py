"""Shared constants for the focus-bridge daemon."""

from __future__ import annotations

VERSION = "0.1.0"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 41593

# Request field limits
MAX_PROMPT_LENGTH = 10_000
MAX_TASK_ID_LENGTH = 100
MAX_MESSAGE_LENGTH = 5_000
MAX_SUMMARY_LENGTH = 2_000
MAX_LABEL_LENGTH = 200
MAX_URL_LENGTH = 2_048
MAX_CONTEXT_LENGTH = 100_000

# JSON request bodies larger than this are refused with 413.
MAX_BODY_BYTES = 1_048_576

LOG_BUFFER_LIMIT = 100

LOG_LEVELS = ("info", "warn", "error", "debug", "success", "focus", "command")

EXTENSION_SCHEME = "chrome-extension://"

CANCELLED_MESSAGE = "Task cancelled by user"
CANCELLED_MESSAGE_KEY = "daemon.log.taskCancelled"

# Applications the IDE focus script may raise.
ALLOWED_TARGET_APPS = frozenset({
    "Antigravity",
    "Cursor",
    "VSCode",
    "VS Code",
    "Code",
    "Terminal",
    "iTerm",
    "iTerm2",
    "Warp",
    "Alacritty",
    "Hyper",
    "Sublime Text",
    "Atom",
    "WebStorm",
    "IntelliJ IDEA",
    "Vim",
    "Neovim",
    "Emacs",
})

HOOK_TASK_ID = "claude-code-session"
