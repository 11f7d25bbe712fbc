"""Declarative description of request kinds and API groups.

Every envelope type points at one :class:`RequestKind`. The kind carries the
wire metadata (HTTP method, token use, download flag) and the admission rule:
whether the request needs an authenticated session before it may go out, and
the set of session states in which it may actually be sent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from authdispatch.network.transport.base import HTTPMethod
from authdispatch.session.state import SessionState

AUTHENTICATED_STATES: FrozenSet[SessionState] = frozenset({SessionState.AUTHENTICATED})
ACCOUNT_STATES: FrozenSet[SessionState] = frozenset(
    {SessionState.ACCOUNT_KNOWN, SessionState.AUTHENTICATED}
)


@dataclass(frozen=True)
class APIGroup:
    """A family of operations sharing a URL segment.

    ``base_url`` is used by requests that do not ride on the session's
    endpoints, e.g. the authorize call itself.
    """

    label: str
    base_url: Optional[str] = None


@dataclass(frozen=True)
class RequestKind:
    name: str
    method: HTTPMethod = HTTPMethod.POST
    authenticated_only: bool = True
    uses_token: bool = True
    download: bool = False
    send_states: FrozenSet[SessionState] = field(default=AUTHENTICATED_STATES)

    def __post_init__(self) -> None:
        if not self.send_states:
            raise ValueError(f"request kind {self.name} must allow at least one send state")

    def may_send(self, state: SessionState) -> bool:
        return state in self.send_states


def authenticated_kind(name: str, method: HTTPMethod = HTTPMethod.POST, *, download: bool = False) -> RequestKind:
    """Kind for ordinary calls that need a valid session token."""

    return RequestKind(name=name, method=method, download=download)


def account_kind(name: str, method: HTTPMethod = HTTPMethod.GET, *, uses_token: bool = False) -> RequestKind:
    """Kind for calls that only need account credentials, not a session."""

    return RequestKind(
        name=name,
        method=method,
        authenticated_only=False,
        uses_token=uses_token,
        send_states=ACCOUNT_STATES,
    )

