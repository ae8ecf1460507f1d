# API Security - Session token bound to the vault lifecycle
#
# The API only answers callers holding the current X-Session-Token. A token
# is issued at server start and replaced on every vault transition (setup,
# unlock, lock); the route performing the transition returns the new one.
# A token seen while the vault was unlocked is therefore useless once the
# vault is locked again.

import secrets
import threading
from typing import Optional

from fastapi import Header, HTTPException, status
import structlog

logger = structlog.get_logger(__name__)

TOKEN_BYTES = 32


class SessionTokens:
    """Holder of the single valid API token."""

    def __init__(self):
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._generation = 0

    def rotate(self) -> str:
        """Replace the current token. Returns the new one."""
        with self._lock:
            self._token = secrets.token_urlsafe(TOKEN_BYTES)
            self._generation += 1
            generation = self._generation
            token = self._token
        logger.debug("session_token_rotated", generation=generation)
        return token

    @property
    def issued(self) -> bool:
        return self._token is not None

    def current(self) -> str:
        """
        Raises:
            RuntimeError: Before the first rotate()
        """
        token = self._token
        if token is None:
            raise RuntimeError("Session token not issued yet")
        return token

    def matches(self, candidate: str) -> bool:
        token = self._token
        # bytes: compare_digest rejects non-ASCII str
        return token is not None and secrets.compare_digest(
            candidate.encode("utf-8"), token.encode("ascii")
        )


session_tokens = SessionTokens()


def initialize_session_token() -> str:
    """Issue the first token at server start."""
    return session_tokens.rotate()


def get_session_token() -> str:
    return session_tokens.current()


def rotate_session_token() -> str:
    """Issue a new token after a vault transition; the previous one stops working."""
    return session_tokens.rotate()


def verify_session_token(x_session_token: Optional[str] = Header(None)) -> str:
    """
    FastAPI dependency checking X-Session-Token against the current token.

    Raises:
        HTTPException: 503 before the server issued a token, 401 when the
                       header is missing or holds a stale/unknown token
    """
    if not session_tokens.issued:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Session token not issued yet")
    if x_session_token is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing X-Session-Token header")
    if not session_tokens.matches(x_session_token):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid or expired session token")
    return x_session_token
