"""Network stack (transports + dispatch pool)."""

from authdispatch.network.dispatcher import Dispatcher
from authdispatch.network.transport.base import BaseTransport, HTTPMethod, TransportRequest
from authdispatch.network.transport.http import HttpTransport
from authdispatch.network.transport.static import StaticTransport

__all__ = [
    "Dispatcher",
    "BaseTransport",
    "HTTPMethod",
    "TransportRequest",
    "HttpTransport",
    "StaticTransport",
]
