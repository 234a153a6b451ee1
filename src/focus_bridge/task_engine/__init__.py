"""Single-task lifecycle engine.

``model`` holds the task dataclasses, ``coordinator`` owns the one active task
and its cancellation bookkeeping, and ``runner`` drives the scripted lifecycle.
"""
