"""Runtime bootstrap: logging plus HTTP wiring from settings."""

from __future__ import annotations

import logging
from typing import Optional

from authdispatch.config import DispatchSettings, get_settings
from authdispatch.network.transport.http import HttpTransport
from authdispatch.runtime import Runtime
from authdispatch.session.exchange import BasicAuthExchange

LOGGER = logging.getLogger(__name__)


def configure_logging(settings: Optional[DispatchSettings] = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def setup(settings: Optional[DispatchSettings] = None, *, authenticate: bool = False) -> Runtime:
    """Build a runtime talking HTTP and attach it.

    Configured account credentials are applied; with ``authenticate`` the
    session also authenticates before returning.
    """

    settings = settings or get_settings()
    runtime = Runtime(settings)
    transport = HttpTransport.from_settings(settings)
    exchange = BasicAuthExchange.from_settings(transport, settings)
    LOGGER.debug("Initialising session via %s (authorize at %s)", type(transport).__name__, exchange.url)
    session = runtime.start(transport, exchange)
    if authenticate:
        if not settings.has_account():
            LOGGER.warning("authenticate requested but no account is configured")
        else:
            session.authenticate()
    return runtime
