"""Tests for push-channel and HTTP authorization."""

from __future__ import annotations

import pytest

from focus_bridge.server.auth import (
    ClientInfo,
    RequestAuthorizer,
    extract_bearer_token,
    extract_extension_id,
    safe_compare,
    verify_client,
)

EXT_ID = "abcdefghijklmnopabcdefghijklmnop"
OTHER_ID = "ponmlkjihgfedcbaponmlkjihgfedcba"
SECRET = "s3cret-value"


class TestVerifyClient:
    def test_open_mode_accepts_anything(self) -> None:
        assert verify_client(ClientInfo(), None) is True

    def test_extension_origin_accepted_without_allow_list(self) -> None:
        info = ClientInfo(origin=f"chrome-extension://{EXT_ID}")
        assert verify_client(info, SECRET) is True

    def test_extension_origin_must_match_allow_list(self) -> None:
        info = ClientInfo(origin=f"chrome-extension://{EXT_ID}")
        assert verify_client(info, SECRET, allowed_extension_id=OTHER_ID) is False
        assert verify_client(info, None, allowed_extension_id=OTHER_ID) is False

    def test_allow_list_is_case_insensitive(self) -> None:
        info = ClientInfo(origin=f"chrome-extension://{EXT_ID.upper()}")
        assert verify_client(info, SECRET, allowed_extension_id=EXT_ID) is True

    def test_bearer_matching_secret(self) -> None:
        info = ClientInfo(authorization=f"Bearer {SECRET}")
        assert verify_client(info, SECRET) is True

    def test_wrong_bearer_rejected(self) -> None:
        info = ClientInfo(authorization="Bearer nope")
        assert verify_client(info, SECRET) is False

    def test_query_token_is_ignored(self) -> None:
        info = ClientInfo(url=f"ws://127.0.0.1:41593/ws?token={SECRET}")
        assert verify_client(info, SECRET) is False

    def test_non_extension_origin_needs_secret(self) -> None:
        info = ClientInfo(origin="http://evil.example")
        assert verify_client(info, SECRET) is False
        assert verify_client(info, None) is True


class TestHelpers:
    @pytest.mark.parametrize(
        "origin",
        [
            None,
            "",
            "chrome-extension://short",
            f"chrome-extension://{EXT_ID}x",
            f"chrome-extension://{EXT_ID[:-1]}1",
            f"moz-extension://{EXT_ID}",
        ],
    )
    def test_extract_extension_id_rejects(self, origin) -> None:
        assert extract_extension_id(origin) is None

    def test_extract_extension_id_keeps_case(self) -> None:
        mixed = "ABCDEFGHIJKLMNOPabcdefghijklmnop"
        assert extract_extension_id(f"chrome-extension://{mixed}") == mixed

    def test_safe_compare(self) -> None:
        assert safe_compare("abc", "abc") is True
        assert safe_compare("abc", "abd") is False
        assert safe_compare("abc", "abcd") is False

    def test_safe_compare_multibyte_length_mismatch(self) -> None:
        # same character count, different byte length
        assert safe_compare("é", "e") is False
        assert safe_compare("日本", "ab") is False

    def test_extract_bearer_token(self) -> None:
        assert extract_bearer_token("Bearer tok") == "tok"
        assert extract_bearer_token("tok") == "tok"
        assert extract_bearer_token("Bearer ") is None
        assert extract_bearer_token(None) is None


class TestRequestAuthorizer:
    def test_bearer_ok_open_mode(self) -> None:
        assert RequestAuthorizer().bearer_ok(None) is True

    def test_bearer_ok_requires_prefix(self) -> None:
        authorizer = RequestAuthorizer(auth_secret=SECRET)
        assert authorizer.bearer_ok(f"Bearer {SECRET}") is True
        assert authorizer.bearer_ok(SECRET) is False
        assert authorizer.bearer_ok(None) is False
