"""Session state machine, credentials and authentication."""

from authdispatch.session.state import SessionState, SessionTracker
from authdispatch.session.credentials import Account, Authorization, CredentialStore
from authdispatch.session.queue import PendingRequestQueue
from authdispatch.session.context import Session

__all__ = [
    "SessionState",
    "SessionTracker",
    "Account",
    "Authorization",
    "CredentialStore",
    "PendingRequestQueue",
    "Session",
]
