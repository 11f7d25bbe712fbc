"""Account identity and session authorization held by a session."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Authorization:
    """Token and endpoints returned by a successful credential exchange.

    Kept as one record so the token and both base URLs are always present or
    absent together.
    """

    token: str = field(repr=False)
    api_url: str
    download_url: str
    validity_seconds: float
    issued_at: datetime = field(default_factory=_utcnow)

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.validity_seconds)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or _utcnow()) >= self.expires_at


@dataclass(frozen=True)
class Account:
    account_id: str
    secret: str = field(repr=False)


@dataclass
class CredentialStore:
    """Holds the account in use and, while authenticated, its authorization.

    ``epoch`` increments whenever the account changes so work started for an
    earlier identity can recognise itself as stale.
    """

    account: Optional[Account] = None
    authorization: Optional[Authorization] = None
    epoch: int = 0

    @property
    def account_id(self) -> Optional[str]:
        return self.account.account_id if self.account else None

    @property
    def has_account(self) -> bool:
        return self.account is not None

    @property
    def session_token(self) -> Optional[str]:
        return self.authorization.token if self.authorization else None

    @property
    def api_url(self) -> Optional[str]:
        return self.authorization.api_url if self.authorization else None

    @property
    def download_url(self) -> Optional[str]:
        return self.authorization.download_url if self.authorization else None

    @property
    def expires_at(self) -> Optional[datetime]:
        return self.authorization.expires_at if self.authorization else None

    def set_account(self, account_id: str, secret: str) -> int:
        if not account_id or not secret:
            raise ValueError("account_id and secret must both be non-empty")
        self.account = Account(account_id=account_id, secret=secret)
        self.authorization = None
        self.epoch += 1
        return self.epoch

    def clear_account(self) -> int:
        self.account = None
        self.authorization = None
        self.epoch += 1
        return self.epoch

    def authorize(self, authorization: Authorization) -> None:
        self.authorization = authorization

    def clear_authorization(self) -> None:
        self.authorization = None
