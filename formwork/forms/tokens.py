"""Anti-forgery token bound to a session."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import threading
import time
from typing import Any, MutableMapping

logger = logging.getLogger(__name__)

TOKEN_SESSION_KEY = "form_token"

# Guards the check-then-store in get_token() across requests sharing a session.
_token_lock = threading.Lock()


def generate_token(session_id: str = "") -> str:
    """Create an unpredictable token seeded with the session id and the time."""
    seed = f"{session_id}{secrets.token_hex(16)}{time.time_ns()}"
    return hashlib.sha256(seed.encode()).hexdigest()


class TokenManager:
    """Issues, stores and verifies the single form token of a session.

    The token is created the first time it is asked for and then lives as long
    as the session does. It is never rotated here; callers that want a fresh
    token remove the session key themselves.
    """

    def __init__(
        self,
        session: MutableMapping[str, Any],
        session_id: str = "",
        *,
        session_key: str = TOKEN_SESSION_KEY,
    ):
        self.session = session
        self.session_id = session_id
        self.session_key = session_key

    def has_token(self) -> bool:
        return bool(self.session.get(self.session_key))

    def get_token(self) -> str:
        """Return the session token, generating and storing it if needed."""
        with _token_lock:
            if not self.has_token():
                self.session[self.session_key] = generate_token(self.session_id)
                logger.debug("Issued form token under session key %r", self.session_key)
            return self.session[self.session_key]

    def verify(self, submitted: str | None) -> bool:
        """True if submitted is non-empty and equals the stored token."""
        stored = self.session.get(self.session_key)
        if not submitted or not stored:
            return False
        return hmac.compare_digest(str(submitted).encode(), str(stored).encode())
