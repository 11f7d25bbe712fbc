"""Authenticated request dispatch for a remote storage API."""

from authdispatch.errors import (
    AuthenticationFailure,
    ConnectionFailure,
    DispatchError,
    DownloadFailure,
    ExitCode,
    FatalError,
    MalformedRequest,
    MalformedResponse,
    ProtocolMismatch,
    RecoverableError,
    ResponseFailure,
    StateTransitionError,
    StateViolation,
    TransportFailure,
    UninitializedError,
)
from authdispatch import fatal
from authdispatch.config import DispatchSettings, get_settings
from authdispatch.session import Session, SessionState
from authdispatch.session.admission import Admission
from authdispatch.network import BaseTransport, Dispatcher, HTTPMethod, HttpTransport, StaticTransport, TransportRequest
from authdispatch.api import APIGroup, APIResponse, Envelope, account_kind, authenticated_kind
from authdispatch.runtime import Runtime

__version__ = "0.1.0"

__all__ = [
    "Admission",
    "APIGroup",
    "APIResponse",
    "AuthenticationFailure",
    "BaseTransport",
    "ConnectionFailure",
    "DispatchError",
    "DispatchSettings",
    "Dispatcher",
    "DownloadFailure",
    "Envelope",
    "ExitCode",
    "FatalError",
    "HTTPMethod",
    "HttpTransport",
    "MalformedRequest",
    "MalformedResponse",
    "ProtocolMismatch",
    "RecoverableError",
    "ResponseFailure",
    "Runtime",
    "Session",
    "SessionState",
    "StateTransitionError",
    "StateViolation",
    "StaticTransport",
    "TransportFailure",
    "TransportRequest",
    "UninitializedError",
    "account_kind",
    "authenticated_kind",
    "fatal",
    "get_settings",
]
