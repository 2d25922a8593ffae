"""
Identity and clock collaborators.

In a deployment these are supplied by the surrounding ledger: it verifies
the caller's signature and provides a monotonic logical timestamp.  The
engine only depends on the two small protocols below.  The in-memory
implementations are used by the tests and the example scenario, and by
any embedding that does its own authentication upstream.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from allergyledger.errors import UnauthorizedError

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def require_auth(self, identity: str) -> None:
        """Raise ``UnauthorizedError`` unless ``identity`` is authenticated."""
        ...


class Clock(Protocol):
    def now(self) -> int:
        """Return the current logical timestamp."""
        ...


# ---------------------------------------------------------------------------
# In-memory identity provider
# ---------------------------------------------------------------------------

class InMemoryIdentityProvider:
    """Session-based identity provider.

    Identities become authenticated through ``sign_in`` and stop being
    authenticated after ``sign_out``.  ``trust_all=True`` authenticates
    every identity, which is what fixtures and demos usually want.
    """

    def __init__(
        self,
        authenticated: Iterable[str] = (),
        trust_all: bool = False,
    ) -> None:
        self._sessions: set[str] = set(authenticated)
        self.trust_all = trust_all

    def sign_in(self, identity: str) -> None:
        if not identity:
            raise ValueError("identity must be a non-empty string")
        self._sessions.add(identity)

    def sign_out(self, identity: str) -> None:
        self._sessions.discard(identity)

    def is_authenticated(self, identity: str) -> bool:
        return self.trust_all or identity in self._sessions

    def require_auth(self, identity: str) -> None:
        if not self.is_authenticated(identity):
            logger.warning("Authentication required for identity %s", identity)
            raise UnauthorizedError(
                f"Identity '{identity}' has not been authenticated."
            )


# ---------------------------------------------------------------------------
# Logical clock
# ---------------------------------------------------------------------------

class LogicalClock:
    """Monotonic logical clock.  It can be moved forward, never back."""

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError(f"start must be >= 0, got {start}")
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int = 1) -> int:
        """Move the clock forward by ``seconds`` and return the new time."""
        if seconds < 0:
            raise ValueError(f"Cannot advance the clock by a negative amount ({seconds}).")
        self._now += seconds
        return self._now

    def set_time(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(
                f"Logical clock is monotonic: cannot move from {self._now} back to {timestamp}."
            )
        self._now = timestamp
