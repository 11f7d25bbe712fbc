"""State-gated admission of submitted envelopes."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Dict, NamedTuple

from authdispatch.session.state import SessionState

if TYPE_CHECKING:
    from authdispatch.api.catalogue import RequestKind


class Admission(enum.Enum):
    DISPATCH = "dispatch"
    ENQUEUE = "enqueue"
    DROP = "drop"
    REJECT = "reject"


class AdmissionRule(NamedTuple):
    unauthenticated_ok: Admission
    authenticated_only: Admission


# NO_ACCOUNT drops silently: anything arriving there belongs to an account that
# has since been cleared. UNINITIALIZED rejects because no transport exists yet.
ADMISSION_TABLE: Dict[SessionState, AdmissionRule] = {
    SessionState.UNINITIALIZED: AdmissionRule(Admission.REJECT, Admission.REJECT),
    SessionState.NO_ACCOUNT: AdmissionRule(Admission.DROP, Admission.DROP),
    SessionState.ACCOUNT_KNOWN: AdmissionRule(Admission.DISPATCH, Admission.ENQUEUE),
    SessionState.AUTHENTICATING: AdmissionRule(Admission.ENQUEUE, Admission.ENQUEUE),
    SessionState.AUTHENTICATED: AdmissionRule(Admission.DISPATCH, Admission.DISPATCH),
}


def decide(state: SessionState, kind: "RequestKind") -> Admission:
    """Return what to do with a request of ``kind`` submitted in ``state``."""

    rule = ADMISSION_TABLE[state]
    if kind.authenticated_only:
        return rule.authenticated_only
    return rule.unauthenticated_ok
