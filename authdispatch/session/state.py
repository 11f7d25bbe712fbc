"""Lifecycle states of the authentication session."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

from authdispatch.errors import StateTransitionError


class SessionState(enum.Enum):
    """Session lifecycle; the machine cycles for the life of the process."""

    UNINITIALIZED = "UNINITIALIZED"
    NO_ACCOUNT = "NO_ACCOUNT"
    ACCOUNT_KNOWN = "ACCOUNT_KNOWN"
    AUTHENTICATING = "AUTHENTICATING"
    AUTHENTICATED = "AUTHENTICATED"


_ATTACHED = frozenset(
    {
        SessionState.NO_ACCOUNT,
        SessionState.ACCOUNT_KNOWN,
        SessionState.AUTHENTICATING,
        SessionState.AUTHENTICATED,
    }
)

_ALLOWED: dict[SessionState, frozenset[SessionState]] = {
    SessionState.UNINITIALIZED: frozenset({SessionState.NO_ACCOUNT}),
    SessionState.NO_ACCOUNT: frozenset({SessionState.ACCOUNT_KNOWN, SessionState.NO_ACCOUNT}),
    SessionState.ACCOUNT_KNOWN: frozenset(
        {SessionState.ACCOUNT_KNOWN, SessionState.AUTHENTICATING, SessionState.NO_ACCOUNT}
    ),
    SessionState.AUTHENTICATING: frozenset(
        {SessionState.AUTHENTICATED, SessionState.ACCOUNT_KNOWN, SessionState.NO_ACCOUNT}
    ),
    SessionState.AUTHENTICATED: frozenset(
        {SessionState.AUTHENTICATING, SessionState.ACCOUNT_KNOWN, SessionState.NO_ACCOUNT}
    ),
}


@dataclass
class SessionTracker:
    """Current state plus transition bookkeeping.

    Not thread-safe on its own; the owning session mutates it under its lock.
    """

    state: SessionState = SessionState.UNINITIALIZED
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    transitions: int = 0

    def transition(self, next_state: SessionState) -> SessionState:
        """Move the session into a new state, validating allowed transitions.

        Returns the state that was left.
        """

        if not self.is_valid_transition(self.state, next_state):
            raise StateTransitionError(
                f"Invalid transition {self.state.value} → {next_state.value}",
                state=self.state,
            )
        previous = self.state
        self.state = next_state
        self.last_transition_at = datetime.now(tz=timezone.utc)
        self.transitions += 1
        return previous

    def reset(self) -> SessionState:
        """Return to ``UNINITIALIZED`` from any state."""

        previous = self.state
        self.state = SessionState.UNINITIALIZED
        self.last_transition_at = datetime.now(tz=timezone.utc)
        self.transitions += 1
        return previous

    @property
    def attached(self) -> bool:
        return self.state in _ATTACHED

    @staticmethod
    def is_valid_transition(current: SessionState, nxt: SessionState) -> bool:
        return nxt in _ALLOWED.get(current, frozenset())
