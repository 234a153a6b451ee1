"""Authorization for the push channel and the HTTP API.

Two kinds of callers reach the daemon:

* the browser extension, identified by its ``chrome-extension://<id>`` origin,
  optionally pinned to one allow-listed extension id;
* external tools (agent hooks, scripts), which must present the shared secret
  as a bearer token once a secret is configured.

Without a secret the daemon runs in open (development) mode for external
callers. Query-string tokens are never accepted.
"""

from __future__ import annotations

import hmac
import re
from typing import Mapping, Optional

from fastapi import HTTPException, Request
from loguru import logger
from pydantic import BaseModel

from ..constants import EXTENSION_SCHEME


_EXTENSION_ORIGIN_RE = re.compile(re.escape(EXTENSION_SCHEME) + r"([A-Za-z]{32})")
_BEARER_PREFIX = "Bearer "


class ClientInfo(BaseModel):
    """What the daemon knows about an inbound connection."""

    origin: Optional[str] = None
    url: Optional[str] = None
    host: Optional[str] = None
    authorization: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], url: Optional[str] = None) -> "ClientInfo":
        return cls(
            origin=headers.get("origin"),
            url=url,
            host=headers.get("host"),
            authorization=headers.get("authorization"),
        )


def extract_extension_id(origin: Optional[str]) -> Optional[str]:
    """Return the extension id of a ``chrome-extension://`` origin.

    Args:
        origin: Origin header value.

    Returns:
        The 32-letter id with its original casing, or None.
    """
    if not origin:
        return None
    match = _EXTENSION_ORIGIN_RE.fullmatch(origin)
    return match.group(1) if match else None


def safe_compare(a: str, b: str) -> bool:
    """Compare two secrets in constant time.

    The UTF-8 encodings are compared, so strings whose characters encode to a
    different number of bytes simply compare unequal.
    """
    a_bytes = a.encode("utf-8")
    b_bytes = b.encode("utf-8")
    if len(a_bytes) != len(b_bytes):
        return False
    return hmac.compare_digest(a_bytes, b_bytes)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Strip a literal ``Bearer `` prefix from an authorization header value."""
    if not authorization:
        return None
    token = authorization[len(_BEARER_PREFIX):] if authorization.startswith(_BEARER_PREFIX) else authorization
    return token or None


def verify_client(
    info: ClientInfo,
    auth_secret: Optional[str] = None,
    allowed_extension_id: Optional[str] = None,
) -> bool:
    """Decide whether a push-channel client is trusted.

    Args:
        info: Connection details.
        auth_secret: Shared secret; None means external callers are not checked.
        allowed_extension_id: Only this extension may connect when set.

    Returns:
        True if the connection is allowed.
    """
    extension_id = extract_extension_id(info.origin)
    if extension_id:
        # The allow-list applies even when no secret is configured.
        if allowed_extension_id:
            return extension_id.lower() == allowed_extension_id.lower()
        return True

    if not auth_secret:
        return True

    token = extract_bearer_token(info.authorization)
    if token is None:
        return False
    return safe_compare(token, auth_secret)


class RequestAuthorizer:
    """FastAPI dependencies enforcing the configured credentials.

    Failures always answer ``401 Unauthorized`` without saying which check
    failed.
    """

    def __init__(self, auth_secret: Optional[str] = None, allowed_extension_id: Optional[str] = None) -> None:
        self.auth_secret = auth_secret
        self.allowed_extension_id = allowed_extension_id

    def bearer_ok(self, authorization: Optional[str]) -> bool:
        if not self.auth_secret:
            return True
        if not authorization or not authorization.startswith(_BEARER_PREFIX):
            return False
        return safe_compare(authorization[len(_BEARER_PREFIX):], self.auth_secret)

    def client_ok(self, info: ClientInfo) -> bool:
        return verify_client(info, self.auth_secret, self.allowed_extension_id)

    async def require_bearer(self, request: Request) -> None:
        """Dependency for routes called by external tools."""
        if not self.bearer_ok(request.headers.get("authorization")):
            logger.warning("Unauthorized request: {} {}", request.method, request.url.path)
            raise HTTPException(status_code=401, detail="Unauthorized")

    async def require_trusted_client(self, request: Request) -> None:
        """Dependency for routes the extension calls; same rule as the push channel."""
        info = ClientInfo.from_headers(request.headers, str(request.url))
        if not self.client_ok(info):
            logger.warning("Unauthorized request: {} {}", request.method, request.url.path)
            raise HTTPException(status_code=401, detail="Unauthorized")
