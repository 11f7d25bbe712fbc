"""Runs the credential exchange and keeps the session token renewed."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping, Optional

from authdispatch.errors import AuthenticationFailure, FatalError, MalformedResponse
from authdispatch.session.credentials import Account, Authorization
from authdispatch.session.exchange import CredentialExchange, CredentialGrant
from authdispatch.session.renewal import RenewalTimer, Scheduler, renewal_delay

LOGGER = logging.getLogger(__name__)


class Authenticator:
    """Turns account credentials into an :class:`Authorization`.

    The owning session drives the state transitions; this class performs the
    exchange itself (without holding the session lock), serialises concurrent
    authentication attempts, and owns the single renewal timer.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler,
        on_renewal_due: Callable[[int], None],
        default_validity_seconds: float,
        renewal_margin_seconds: float,
        renewal_min_delay_seconds: float,
        exchange: Optional[CredentialExchange] = None,
    ) -> None:
        self.exchange = exchange
        self.renewal = RenewalTimer(scheduler, on_renewal_due)
        self._default_validity_seconds = default_validity_seconds
        self._renewal_margin_seconds = renewal_margin_seconds
        self._renewal_min_delay_seconds = renewal_min_delay_seconds
        self._serial = threading.Lock()
        self._completed = 0

    @property
    def completed(self) -> int:
        """Number of successful exchanges."""

        return self._completed

    @contextmanager
    def serialized(self) -> Iterator[None]:
        with self._serial:
            yield

    def exchange_credentials(self, account: Account) -> Authorization:
        """Run the exchange for ``account``; raises :class:`AuthenticationFailure`."""

        exchange = self.exchange
        if exchange is None:
            raise AuthenticationFailure("No credential exchange configured for the session")
        LOGGER.info("Authenticating account %s", account.account_id)
        try:
            grant = self._coerce(exchange(account.account_id, account.secret))
        except FatalError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise AuthenticationFailure(f"Credential exchange failed for {account.account_id}: {exc}") from exc
        self._completed += 1
        return Authorization(
            token=grant.token,
            api_url=grant.api_url,
            download_url=grant.download_url,
            validity_seconds=grant.validity_seconds or self._default_validity_seconds,
        )

    def arm_renewal(self, authorization: Authorization, epoch: int) -> float:
        delay = renewal_delay(
            authorization.validity_seconds,
            self._renewal_margin_seconds,
            self._renewal_min_delay_seconds,
        )
        self.renewal.arm(delay, epoch)
        return delay

    def cancel_renewal(self) -> None:
        self.renewal.cancel()

    @staticmethod
    def _coerce(grant: CredentialGrant | Mapping[str, Any]) -> CredentialGrant:
        if isinstance(grant, CredentialGrant):
            return grant
        if isinstance(grant, Mapping):
            return CredentialGrant.from_payload(grant)
        raise MalformedResponse(f"Credential exchange returned {type(grant).__name__}")
