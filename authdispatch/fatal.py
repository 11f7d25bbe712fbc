"""Process-wide handling of fatal errors.

Fatal errors (protocol skew, failed authentication, use before initialisation)
end the process. The handler is replaceable so embedding applications and tests
can observe the failure instead; whatever the handler does, :func:`raise_fatal`
re-raises the error afterwards so the offending code path never continues.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, NoReturn, Optional

from authdispatch.errors import FatalError

LOGGER = logging.getLogger(__name__)

FatalHandler = Callable[[FatalError], None]

_lock = threading.Lock()


def terminate_process(error: FatalError) -> None:
    """Log ``error`` and exit immediately with its exit code."""

    LOGGER.critical("Fatal %s: %s", type(error).__name__, error, exc_info=error)
    logging.shutdown()
    os._exit(int(error.exit_code))


_handler: FatalHandler = terminate_process


def get_handler() -> FatalHandler:
    return _handler


def set_handler(handler: Optional[FatalHandler]) -> FatalHandler:
    """Install ``handler`` (``None`` restores the default) and return the previous one."""

    global _handler
    with _lock:
        previous = _handler
        _handler = handler or terminate_process
    return previous


def raise_fatal(error: FatalError, handler: Optional[FatalHandler] = None) -> NoReturn:
    """Surface ``error`` through the fatal handler, then raise it."""

    (handler or _handler)(error)
    raise error
