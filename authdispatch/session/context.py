"""The authentication session: state machine, credentials, queue and dispatch.

A :class:`Session` accepts envelopes, decides per envelope whether it goes out
now, waits for authentication, or is dropped, and keeps the session token
renewed. Every mutation of state, credentials and the pending queue happens
under one re-entrant lock; the lock is never held across a transport call or a
credential exchange.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import TYPE_CHECKING, NoReturn, Optional, Tuple

from authdispatch import fatal
from authdispatch.config import DispatchSettings, get_settings
from authdispatch.errors import AuthenticationFailure, FatalError, StateTransitionError, StateViolation, UninitializedError
from authdispatch.network.dispatcher import Dispatcher
from authdispatch.network.transport.base import BaseTransport, TransportRequest
from authdispatch.session.admission import Admission, decide
from authdispatch.session.authenticator import Authenticator
from authdispatch.session.credentials import CredentialStore
from authdispatch.session.exchange import CredentialExchange
from authdispatch.session.queue import PendingRequestQueue
from authdispatch.session.renewal import RenewalTimer, Scheduler, ThreadingScheduler
from authdispatch.session.state import SessionState, SessionTracker

if TYPE_CHECKING:
    from authdispatch.api.envelope import Envelope

LOGGER = logging.getLogger(__name__)


class Session:
    """Explicitly constructed authentication context for one account at a time."""

    def __init__(
        self,
        settings: Optional[DispatchSettings] = None,
        *,
        dispatcher: Optional[Dispatcher] = None,
        scheduler: Optional[Scheduler] = None,
        fatal_handler: Optional[fatal.FatalHandler] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._lock = threading.RLock()
        self._tracker = SessionTracker()
        self._credentials = CredentialStore()
        self._queue = PendingRequestQueue()
        self._transport: Optional[BaseTransport] = None
        self._owns_dispatcher = dispatcher is None
        self._dispatcher = dispatcher or Dispatcher(
            max_workers=self.settings.dispatch_max_workers,
            thread_name_prefix=self.settings.dispatch_thread_prefix,
        )
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or ThreadingScheduler()
        self._authenticator = Authenticator(
            scheduler=self._scheduler,
            on_renewal_due=self._on_renewal_due,
            default_validity_seconds=self.settings.token_validity_seconds,
            renewal_margin_seconds=self.settings.renewal_margin_seconds,
            renewal_min_delay_seconds=self.settings.renewal_min_delay_seconds,
        )
        self._fatal_handler = fatal_handler
        self._dropped = 0
        self._closed = False

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Session(state={self._tracker.state.value}, account={self._credentials.account_id!r}, pending={len(self._queue)})"

    # Diagnostics ---------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.current_state()

    def current_state(self) -> SessionState:
        with self._lock:
            return self._tracker.state

    def pending_count(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def dropped_count(self) -> int:
        """Envelopes dropped silently, either on arrival or when credentials changed."""

        with self._lock:
            return self._dropped

    @property
    def account_id(self) -> Optional[str]:
        with self._lock:
            return self._credentials.account_id

    @property
    def authenticated(self) -> bool:
        with self._lock:
            return self._tracker.state is SessionState.AUTHENTICATED and self._credentials.authorization is not None

    @property
    def expires_at(self) -> Optional[datetime]:
        with self._lock:
            return self._credentials.expires_at

    @property
    def renewal(self) -> RenewalTimer:
        return self._authenticator.renewal

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    # Lifecycle -----------------------------------------------------------

    def attach(self, transport: BaseTransport, exchange: Optional[CredentialExchange] = None) -> None:
        """Assign the transport (and credential exchange); the session then has no account."""

        with self._lock:
            self._transport = transport
            self._authenticator.exchange = exchange
            self._forget_account_locked("transport attached")
            self._transition(SessionState.NO_ACCOUNT)

    def detach(self) -> None:
        """Drop transport, account and queued work and return to ``UNINITIALIZED``."""

        with self._lock:
            self._forget_account_locked("session detached")
            self._transport = None
            self._authenticator.exchange = None
            previous = self._tracker.reset()
        LOGGER.debug("Session %s → %s", previous.value, SessionState.UNINITIALIZED.value)

    def close(self, *, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._authenticator.cancel_renewal()
        if self._owns_scheduler:
            self._scheduler.shutdown()
        if self._owns_dispatcher:
            self._dispatcher.shutdown(wait=wait)

    # Credentials ---------------------------------------------------------

    def update_credentials(self, account_id: str, secret: str) -> None:
        """Replace the account identity.

        Any token from a previous authentication is invalidated, the renewal
        timer is cancelled, and queued envelopes are dropped without invoking
        their callbacks.
        """

        if not account_id or not secret:
            raise ValueError("account_id and secret must both be non-empty")
        with self._lock:
            self._check_transition(SessionState.ACCOUNT_KNOWN)
            self._forget_account_locked("credentials replaced")
            self._credentials.set_account(account_id, secret)
            self._transition(SessionState.ACCOUNT_KNOWN)
        LOGGER.info("Account %s configured", account_id)

    def clear_credentials(self) -> None:
        with self._lock:
            self._check_transition(SessionState.NO_ACCOUNT)
            self._forget_account_locked("credentials cleared")
            self._transition(SessionState.NO_ACCOUNT)

    # Authentication ------------------------------------------------------

    def authenticate(self) -> None:
        """Authenticate the current account and flush queued envelopes.

        Blocks the caller until the exchange completes. Failure is fatal.
        """

        self._authenticate()

    def _authenticate(self, expected_epoch: Optional[int] = None) -> None:
        # A renewal passes the epoch it was armed for; anything that changed the
        # account since then turns the renewal into a no-op.
        with self._authenticator.serialized():
            with self._lock:
                if expected_epoch is not None and not self._renewal_still_due(expected_epoch):
                    return
                account = self._credentials.account
                if account is None:
                    self._fatal(AuthenticationFailure(f"No account credentials in state {self._tracker.state.value}"))
                if self._authenticator.exchange is None:
                    self._fatal(AuthenticationFailure("No credential exchange configured for the session"))
                self._transition(SessionState.AUTHENTICATING)
                self._credentials.clear_authorization()
                self._authenticator.cancel_renewal()
                epoch = self._credentials.epoch

            try:
                authorization = self._authenticator.exchange_credentials(account)
            except FatalError as exc:
                self._fatal(exc)

            with self._lock:
                if self._credentials.epoch != epoch:
                    LOGGER.info("Account changed during authentication; discarding token for %s", account.account_id)
                    return
                self._credentials.authorize(authorization)
                self._transition(SessionState.AUTHENTICATED)
                delay = self._authenticator.arm_renewal(authorization, epoch)
                flushed = self._queue.drain()
                if flushed:
                    LOGGER.info("Flushing %s queued request(s)", len(flushed))
                self._dispatcher.dispatch_all(flushed, self._prepare)
        LOGGER.info("Authenticated account %s; renewal in %.0fs", account.account_id, delay)

    def _on_renewal_due(self, epoch: int) -> None:
        self._authenticate(expected_epoch=epoch)

    def _renewal_still_due(self, epoch: int) -> bool:
        if self._closed or epoch != self._credentials.epoch:
            LOGGER.debug("Ignoring renewal for a replaced account")
            return False
        if self._tracker.state is not SessionState.AUTHENTICATED:
            LOGGER.debug("Ignoring renewal in state %s", self._tracker.state.value)
            return False
        return True

    # Submission ----------------------------------------------------------

    def submit(self, envelope: "Envelope") -> Admission:
        """Admit ``envelope`` according to the current state.

        Returns the admission decision. ``DROP`` means the envelope was
        discarded without invoking a callback.
        """

        if envelope.claimed or envelope.completed:
            raise ValueError(f"{envelope!r} has already been submitted")
        with self._lock:
            state = self._tracker.state
            decision = decide(state, envelope.kind)
            if decision is Admission.DISPATCH:
                self._dispatcher.dispatch(envelope, self._prepare)
            elif decision is Admission.ENQUEUE:
                depth = self._queue.append(envelope)
                LOGGER.debug("Queued %r in state %s (depth=%s)", envelope, state.value, depth)
            elif decision is Admission.DROP:
                self._dropped += 1
        if decision is Admission.REJECT:
            self._fatal(UninitializedError(f"{envelope!r} submitted before the session was initialised"))
        if decision is Admission.DROP:
            LOGGER.info("Dropping %r: no account configured", envelope)
        return decision

    def _prepare(self, envelope: "Envelope") -> Tuple[BaseTransport, TransportRequest]:
        with self._lock:
            state = self._tracker.state
            if not envelope.may_send(state):
                raise StateViolation(
                    f"Attempted to send a {type(envelope).__name__} while in the state {state.value}",
                    state=state,
                )
            transport = self._transport
            if transport is None:
                raise StateViolation(f"No transport attached for {type(envelope).__name__}", state=state)
            token = self._credentials.session_token
            api_url = self._credentials.api_url
            download_url = self._credentials.download_url
        return transport, envelope.build_request(token=token, api_url=api_url, download_url=download_url)

    # Internals -----------------------------------------------------------

    def _forget_account_locked(self, reason: str) -> None:
        self._authenticator.cancel_renewal()
        self._credentials.clear_account()
        dropped = self._queue.clear()
        if dropped:
            self._dropped += dropped
            LOGGER.info("Dropped %s queued request(s): %s", dropped, reason)

    def _check_transition(self, next_state: SessionState) -> None:
        current = self._tracker.state
        if not SessionTracker.is_valid_transition(current, next_state):
            raise StateTransitionError(
                f"Invalid transition {current.value} → {next_state.value}",
                state=current,
            )

    def _transition(self, next_state: SessionState) -> None:
        previous = self._tracker.transition(next_state)
        LOGGER.debug("Session %s → %s", previous.value, next_state.value)

    def _fatal(self, error: FatalError) -> NoReturn:
        fatal.raise_fatal(error, self._fatal_handler)
