"""Error taxonomy for the request-dispatch core."""

from __future__ import annotations

import enum
from typing import Any, Iterable, Optional


class ExitCode(enum.IntEnum):
    """Process exit status used when a fatal error terminates the runtime."""

    NORMAL_EXIT = 0
    AUTHENTICATION_FAILURE = 1
    COULD_NOT_CONNECT = 2
    API_MISMATCH = 3
    UNEXPECTED_EXCEPTION = 4
    APPLICATION_DATA_ISSUE = 5
    APPLICATION_STATE_ISSUE = 6
    DATA_DOWNLOAD_ISSUE = 7
    FAILED_CONNECTION = 8
    BAD_RESPONSE = 9
    BAD_STATE = 10


class DispatchError(Exception):
    """Base error for every failure raised or reported by authdispatch."""

    exit_code: ExitCode = ExitCode.UNEXPECTED_EXCEPTION
    fatal: bool = False


class FatalError(DispatchError):
    """Unrecoverable condition; surfacing it ends the process."""

    fatal = True


class RecoverableError(DispatchError):
    """Reported once through the originating envelope's failure callback."""


class ProtocolMismatch(FatalError):
    """A request's protocol version is not understood by its response type."""

    exit_code = ExitCode.API_MISMATCH

    def __init__(self, request_type: type, response_type: type, supported: Iterable[str], version: str) -> None:
        self.request_type = request_type
        self.response_type = response_type
        self.supported = frozenset(supported)
        self.version = version
        super().__init__(
            f"{request_type.__name__} speaks {version}, "
            f"{response_type.__name__} supports {sorted(self.supported)}"
        )


class AuthenticationFailure(FatalError):
    """Authentication could not establish a valid session token."""

    exit_code = ExitCode.AUTHENTICATION_FAILURE


class UninitializedError(FatalError):
    """A request reached a session that has no transport attached."""

    exit_code = ExitCode.UNEXPECTED_EXCEPTION


class StateViolation(RecoverableError):
    """A request was about to be sent while the session was in a disallowed state."""

    exit_code = ExitCode.BAD_STATE

    def __init__(self, message: str, *, state: Any = None) -> None:
        self.state = state
        super().__init__(message)


class StateTransitionError(StateViolation):
    """Raised when the session is asked to move along an edge it does not have."""


class TransportFailure(RecoverableError):
    """The transport could not complete the exchange."""

    exit_code = ExitCode.FAILED_CONNECTION


class ConnectionFailure(TransportFailure):
    """The remote endpoint could not be reached."""


class ResponseFailure(TransportFailure):
    """The remote endpoint answered with a non-2xx status."""

    exit_code = ExitCode.BAD_RESPONSE

    def __init__(self, status_code: int, reason: str = "", body: Optional[str] = None, *, url: Optional[str] = None) -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.url = url
        message = f"HTTP {status_code}"
        if reason:
            message = f"{message} {reason}"
        if url:
            message = f"{message} from {url}"
        super().__init__(message)


class DownloadFailure(TransportFailure):
    """Downloaded content could not be written to its destination."""

    exit_code = ExitCode.DATA_DOWNLOAD_ISSUE


class MalformedResponse(RecoverableError):
    """The response payload could not be decoded into the expected shape."""

    exit_code = ExitCode.BAD_RESPONSE


class MalformedRequest(RecoverableError):
    """An envelope could not be turned into a wire request."""

    exit_code = ExitCode.APPLICATION_DATA_ISSUE


__all__ = [
    "ExitCode",
    "DispatchError",
    "FatalError",
    "RecoverableError",
    "ProtocolMismatch",
    "AuthenticationFailure",
    "UninitializedError",
    "StateViolation",
    "StateTransitionError",
    "TransportFailure",
    "ConnectionFailure",
    "ResponseFailure",
    "DownloadFailure",
    "MalformedResponse",
    "MalformedRequest",
]
