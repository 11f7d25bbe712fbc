"""Process runtime: owns the pieces a session needs and tears them down together."""

from __future__ import annotations

import logging
from typing import Optional

from authdispatch import fatal
from authdispatch.config import DispatchSettings, get_settings
from authdispatch.network.dispatcher import Dispatcher
from authdispatch.network.transport.base import BaseTransport
from authdispatch.session.context import Session
from authdispatch.session.exchange import CredentialExchange
from authdispatch.session.renewal import Scheduler, ThreadingScheduler

LOGGER = logging.getLogger(__name__)


class Runtime:
    """Settings, scheduler, dispatcher and session for one process.

    The session is created unattached; call :meth:`start` with a transport to
    move it out of ``UNINITIALIZED``.
    """

    def __init__(
        self,
        settings: Optional[DispatchSettings] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        dispatcher: Optional[Dispatcher] = None,
        fatal_handler: Optional[fatal.FatalHandler] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.scheduler = scheduler or ThreadingScheduler()
        self.dispatcher = dispatcher or Dispatcher(
            max_workers=self.settings.dispatch_max_workers,
            thread_name_prefix=self.settings.dispatch_thread_prefix,
        )
        self.session = Session(
            self.settings,
            dispatcher=self.dispatcher,
            scheduler=self.scheduler,
            fatal_handler=fatal_handler,
        )
        self.transport: Optional[BaseTransport] = None
        self._closed = False

    def __enter__(self) -> Runtime:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self, transport: BaseTransport, exchange: Optional[CredentialExchange] = None) -> Session:
        """Attach ``transport`` and ``exchange`` and apply configured credentials."""

        self.transport = transport
        self.session.attach(transport, exchange)
        if self.settings.has_account():
            self.session.update_credentials(self.settings.account_id, self.settings.account_secret)
        LOGGER.info(
            "Runtime started (transport=%s, workers=%s)",
            type(transport).__name__,
            self.dispatcher.max_workers,
        )
        return self.session

    def close(self, *, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        self.session.close(wait=wait)
        self.scheduler.shutdown()
        self.dispatcher.shutdown(wait=wait)
        if self.transport is not None:
            self.transport.close()
        LOGGER.info("Runtime stopped")
