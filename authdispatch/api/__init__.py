"""Request envelopes, request kinds and typed responses."""

from authdispatch.api.catalogue import (
    ACCOUNT_STATES,
    AUTHENTICATED_STATES,
    APIGroup,
    RequestKind,
    account_kind,
    authenticated_kind,
)
from authdispatch.api.response import APIResponse, DownloadResponse, EmptyResponse
from authdispatch.api.envelope import Completion, Envelope

__all__ = [
    "ACCOUNT_STATES",
    "AUTHENTICATED_STATES",
    "APIGroup",
    "RequestKind",
    "account_kind",
    "authenticated_kind",
    "APIResponse",
    "DownloadResponse",
    "EmptyResponse",
    "Completion",
    "Envelope",
]
