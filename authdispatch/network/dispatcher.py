"""Bounded worker pool that performs transport calls for admitted envelopes."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Tuple

from authdispatch.errors import MalformedRequest, RecoverableError, StateViolation, TransportFailure
from authdispatch.network.transport.base import BaseTransport, TransportRequest

if TYPE_CHECKING:
    from authdispatch.api.envelope import Envelope

LOGGER = logging.getLogger(__name__)

# Resolves an envelope against the session as it is *now*; raises StateViolation
# when the envelope may no longer be sent.
Prepare = Callable[["Envelope"], Tuple[BaseTransport, TransportRequest]]


class Dispatcher:
    """Runs each admitted envelope's transport call on a pool thread.

    Work is started in submission order; completion order across envelopes is
    unspecified. Each envelope is sent at most once, and its callbacks always
    run on the pool thread that handled it.
    """

    def __init__(
        self,
        *,
        max_workers: int,
        thread_name_prefix: str = "dispatch",
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be positive")
        self._max_workers = max_workers
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self._lock = threading.Lock()
        self._inflight = 0
        self._closed = False
        self._dispatched = 0

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dispatched(self) -> int:
        """Total envelopes handed to the pool since construction."""

        return self._dispatched

    def inflight(self) -> int:
        """Envelopes currently between prepare and completion on a pool thread."""

        with self._lock:
            return self._inflight

    def dispatch(self, envelope: "Envelope", prepare: Prepare) -> Optional[Future]:
        """Hand ``envelope`` to the pool; returns the pool future."""

        with self._lock:
            if self._closed:
                LOGGER.warning("Dispatcher closed; failing %r", envelope)
                envelope.fail(StateViolation(f"Dispatcher is shut down; {envelope!r} not sent"))
                return None
            future = self._executor.submit(self._run, envelope, prepare)
            self._dispatched += 1
        return future

    def dispatch_all(self, envelopes: Iterable["Envelope"], prepare: Prepare) -> List[Future]:
        """Hand several envelopes to the pool, preserving their order."""

        futures: List[Future] = []
        for envelope in envelopes:
            future = self.dispatch(envelope, prepare)
            if future is not None:
                futures.append(future)
        return futures

    def shutdown(self, *, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait)

    def _run(self, envelope: "Envelope", prepare: Prepare) -> None:
        if not envelope.claim():
            LOGGER.warning("Envelope %r already dispatched; skipping duplicate", envelope)
            return
        with self._lock:
            self._inflight += 1
        try:
            self._send(envelope, prepare)
        finally:
            with self._lock:
                self._inflight -= 1

    def _send(self, envelope: "Envelope", prepare: Prepare) -> None:
        try:
            transport, request = prepare(envelope)
        except StateViolation as exc:
            LOGGER.warning("Not sending %r: %s", envelope, exc)
            envelope.fail(exc)
            return
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Could not build request for %r", envelope)
            failure = MalformedRequest(f"Could not build {envelope.operation} request: {exc}")
            failure.__cause__ = exc
            envelope.fail(failure)
            return
        LOGGER.debug("Sending %s %s", request.method.value, request.url)
        try:
            payload = transport.send(request)
        except RecoverableError as exc:
            LOGGER.warning("%s failed: %s", envelope.operation, exc)
            envelope.fail(exc)
            return
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Transport raised unexpectedly for %r", envelope)
            failure = TransportFailure(f"Unexpected transport error: {exc}")
            failure.__cause__ = exc
            envelope.fail(failure)
            return
        envelope.complete(payload)
