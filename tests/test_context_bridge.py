"""Tests for the browser context queue."""

from __future__ import annotations

from focus_bridge.context_bridge import UNTRUSTED_NOTICE, BrowserContext, ContextQueue, format_contexts


def _ctx(n: int, **extra) -> BrowserContext:
    return BrowserContext(url=f"https://example.com/{n}", title=f"Page {n}", content=f"content {n}", **extra)


def test_queue_drops_oldest() -> None:
    queue = ContextQueue(limit=3)
    for n in range(5):
        queue.push(_ctx(n))
    assert len(queue) == 3
    assert [c.url for c in queue.drain()] == [f"https://example.com/{n}" for n in (2, 3, 4)]
    assert len(queue) == 0
    assert queue.drain() == []


def test_push_returns_queue_length() -> None:
    queue = ContextQueue(limit=5)
    assert queue.push(_ctx(1)) == 1
    assert queue.push(_ctx(2)) == 2


def test_accepts_camel_case_payload() -> None:
    ctx = BrowserContext.model_validate(
        {"url": "https://a", "content": "c", "selectedText": "sel", "strategy": "density"}
    )
    assert ctx.selected_text == "sel"
    assert ctx.title == ""


def test_format_empty() -> None:
    assert format_contexts([]) is None


def test_format_wraps_untrusted_envelope() -> None:
    text = format_contexts([_ctx(1, strategy="semantic"), _ctx(2, selected_text="picked")])
    assert text.startswith("<context-bridge>\n" + UNTRUSTED_NOTICE)
    assert text.endswith("</context-bridge>")
    assert '<browser-context url="https://example.com/1">' in text
    assert "Page: Page 1 (https://example.com/1) [via: semantic]" in text
    assert "Selected text:\npicked\n\nFull page:\ncontent 2" in text


def test_format_untitled() -> None:
    text = format_contexts([BrowserContext(url="https://a", content="c")])
    assert "Page: Untitled (https://a)" in text
