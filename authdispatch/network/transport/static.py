"""In-memory transport for offline use and testing."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Union

from authdispatch.network.transport.base import BaseTransport, TransportRequest

LOGGER = logging.getLogger(__name__)

Reply = Union[Dict[str, Any], BaseException, Callable[[TransportRequest], Dict[str, Any]]]


class StaticTransport(BaseTransport):
    """Answers requests from a table keyed by operation name.

    A reply may be a payload mapping, an exception to raise, or a callable that
    receives the request. Operations without a route answer ``{}``.
    """

    def __init__(self, routes: Dict[str, Reply] | None = None) -> None:
        self._routes: Dict[str, Reply] = dict(routes or {})
        self._lock = threading.Lock()
        self._sent: List[TransportRequest] = []

    def route(self, operation: str, reply: Reply) -> None:
        with self._lock:
            self._routes[operation] = reply

    @property
    def sent(self) -> List[TransportRequest]:
        with self._lock:
            return list(self._sent)

    def sent_operations(self) -> List[str]:
        return [request.operation or request.url for request in self.sent]

    def send(self, request: TransportRequest) -> Dict[str, Any]:
        with self._lock:
            self._sent.append(request)
            reply = self._routes.get(request.operation or "")
        LOGGER.debug("Static transport send(): %s %s", request.method.value, request.url)
        if reply is None:
            return {}
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(request)
        return dict(reply)
