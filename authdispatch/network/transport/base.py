"""Transport abstractions for dispatched API requests."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


class HTTPMethod(str, enum.Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    HEAD = "HEAD"
    DELETE = "DELETE"
    PATCH = "PATCH"
    OPTIONS = "OPTIONS"


@dataclass(frozen=True)
class TransportRequest:
    """Fully resolved request handed to a transport."""

    method: HTTPMethod
    url: str
    authorization: Optional[str] = field(default=None, repr=False)
    body: Optional[Dict[str, Any]] = None
    download_to: Optional[Path] = None
    operation: Optional[str] = None

    @property
    def is_download(self) -> bool:
        return self.download_to is not None


class BaseTransport(ABC):
    """Performs one request/response exchange.

    ``send`` returns the decoded JSON payload on success. Failures are raised as
    :class:`~authdispatch.errors.ConnectionFailure`,
    :class:`~authdispatch.errors.ResponseFailure`,
    :class:`~authdispatch.errors.MalformedResponse` or
    :class:`~authdispatch.errors.DownloadFailure`. Implementations must be safe
    to call from several dispatcher threads at once.
    """

    @abstractmethod
    def send(self, request: TransportRequest) -> Dict[str, Any]:
        ...

    def close(self) -> None:
        return None
