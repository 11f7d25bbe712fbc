"""Token renewal timer."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional, Protocol

LOGGER = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(ABC):
    """Runs a callback once after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...

    def shutdown(self) -> None:
        return None


class ThreadingScheduler(Scheduler):
    """One daemon ``threading.Timer`` per scheduled call."""

    def __init__(self, *, name: str = "renewal") -> None:
        self._name = name
        self._lock = threading.Lock()
        self._timers: set[threading.Timer] = set()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer: threading.Timer

        def _run() -> None:
            with self._lock:
                self._timers.discard(timer)
            callback()

        timer = threading.Timer(delay, _run)
        timer.name = f"{self._name}-{int(time.monotonic() * 1000)}"
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return timer

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()


def renewal_delay(validity_seconds: float, margin_seconds: float, minimum_seconds: float) -> float:
    """Seconds to wait before renewing a token valid for ``validity_seconds``."""

    delay = validity_seconds - margin_seconds
    if delay < minimum_seconds:
        LOGGER.warning(
            "Token validity %.1fs does not cover renewal margin %.1fs; renewing after %.1fs",
            validity_seconds,
            margin_seconds,
            minimum_seconds,
        )
        return minimum_seconds
    return delay


class RenewalTimer:
    """Holds at most one pending re-authentication.

    Arming replaces whatever was armed before. The callback receives the
    credential epoch the timer was armed for so it can ignore firings that
    belong to a replaced account.
    """

    def __init__(self, scheduler: Scheduler, callback: Callable[[int], None]) -> None:
        self._scheduler = scheduler
        self._callback = callback
        self._lock = threading.Lock()
        self._handle: Optional[TimerHandle] = None
        self._generation = 0
        self._delay: Optional[float] = None
        self._due_at: Optional[float] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def delay(self) -> Optional[float]:
        return self._delay

    @property
    def due_at(self) -> Optional[float]:
        """``time.monotonic()`` value at which the timer fires, if armed."""

        return self._due_at

    def arm(self, delay: float, epoch: int) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            generation = self._generation
            self._delay = delay
            self._due_at = time.monotonic() + delay
            self._handle = self._scheduler.call_later(delay, lambda: self._fire(generation, epoch))
        LOGGER.debug("Token renewal armed in %.1fs", delay)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            LOGGER.debug("Token renewal cancelled")
        self._handle = None
        self._delay = None
        self._due_at = None
        self._generation += 1

    def _fire(self, generation: int, epoch: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._handle = None
            self._delay = None
            self._due_at = None
        LOGGER.info("Session token nearing expiry; re-authenticating")
        self._callback(epoch)
