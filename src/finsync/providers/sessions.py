"""Short-lived storage for two-factor intermediate state.

A session is created by an adapter's ``init_two_factor`` and consumed
exactly once by ``complete_two_factor``. Entries expire after a finite TTL
even if never completed.

The in-memory store is per process. Deployments running more than one
instance must either pin two-factor flows to one instance or provide a
shared ``TwoFactorSessionStore`` implementation.
"""

import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600


def new_session_id(provider: str) -> str:
    """Generate an unguessable session id prefixed with the provider tag."""
    return f"{provider}_{secrets.token_urlsafe(24)}"


class TwoFactorSessionStore(ABC):
    """Key-value store for two-factor contexts.

    A session may be bound to an owner (for example the connection that
    started it); it can then only be consumed by that owner.
    """

    @abstractmethod
    def put(self, session_id: str, context: dict[str, Any], owner: str | None = None) -> None:
        """Store the context for a new session."""

    @abstractmethod
    def pop(self, session_id: str | None, owner: str | None = None) -> dict[str, Any] | None:
        """Remove and return a session's context.

        Returns None when the id is missing, expired or already consumed,
        and when ``owner`` differs from the owner the session was stored
        with. A session asked for by the wrong owner stays available.
        """

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop expired sessions and return how many were removed."""


class InMemoryTwoFactorSessionStore(TwoFactorSessionStore):
    """Dictionary-backed store with a TTL, safe to share between tasks."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, tuple[float, str | None, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _purge_locked(self) -> int:
        now = self._clock()
        expired = [sid for sid, (created, _, _) in self._sessions.items() if now - created >= self.ttl_seconds]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Purged expired two-factor sessions", extra={"count": len(expired)})
        return len(expired)

    def put(self, session_id: str, context: dict[str, Any], owner: str | None = None) -> None:
        with self._lock:
            self._purge_locked()
            self._sessions[session_id] = (self._clock(), owner, dict(context))

    def pop(self, session_id: str | None, owner: str | None = None) -> dict[str, Any] | None:
        if not session_id:
            return None
        with self._lock:
            self._purge_locked()
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            if entry[1] != owner:
                logger.warning("Two-factor session requested by another owner", extra={"session_id": session_id})
                return None
            del self._sessions[session_id]
        return entry[2]

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked()
