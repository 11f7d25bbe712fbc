"""Transport implementations for dispatched requests."""

from .base import BaseTransport, HTTPMethod, TransportRequest
from .http import HttpTransport
from .static import StaticTransport

__all__ = ["BaseTransport", "HTTPMethod", "TransportRequest", "HttpTransport", "StaticTransport"]
