"""Credential exchange: account identity in, session token and endpoints out."""

from __future__ import annotations

import base64
import logging
from typing import Callable, Optional

from pydantic import Field

from authdispatch.api.response import APIResponse
from authdispatch.errors import AuthenticationFailure, RecoverableError
from authdispatch.network.transport.base import BaseTransport, HTTPMethod, TransportRequest

LOGGER = logging.getLogger(__name__)


class CredentialGrant(APIResponse):
    """Result of a successful credential exchange."""

    token: str = Field(alias="authorizationToken", min_length=1, repr=False)
    api_url: str = Field(alias="apiUrl", min_length=1)
    download_url: str = Field(alias="downloadUrl", min_length=1)
    validity_seconds: Optional[float] = Field(default=None, alias="validitySeconds", gt=0)


CredentialExchange = Callable[[str, str], CredentialGrant]


def basic_authorization(account_id: str, secret: str) -> str:
    encoded = base64.b64encode(f"{account_id}:{secret}".encode("utf-8")).decode("ascii")
    return f"Basic {encoded}"


class BasicAuthExchange:
    """Exchanges account credentials at an authorize endpoint using HTTP Basic auth.

    The call goes straight to the transport: it is how the session becomes
    authenticated, so it cannot itself wait on the session.
    """

    def __init__(
        self,
        transport: BaseTransport,
        *,
        base_url: str,
        group: str = "b2api",
        version: str = "v1",
        operation: str = "b2_authorize_account",
        validity_seconds: Optional[float] = None,
    ) -> None:
        self._transport = transport
        self._url = "/".join((base_url.rstrip("/"), group, version, operation))
        self._operation = operation
        self._validity_seconds = validity_seconds

    @classmethod
    def from_settings(cls, transport: BaseTransport, settings) -> BasicAuthExchange:
        return cls(
            transport,
            base_url=settings.authorize_url,
            group=settings.api_group,
            version=settings.api_version,
            operation=settings.authorize_operation,
            validity_seconds=settings.token_validity_seconds,
        )

    @property
    def url(self) -> str:
        return self._url

    def __call__(self, account_id: str, secret: str) -> CredentialGrant:
        request = TransportRequest(
            method=HTTPMethod.GET,
            url=self._url,
            authorization=basic_authorization(account_id, secret),
            operation=self._operation,
        )
        try:
            payload = self._transport.send(request)
            grant = CredentialGrant.from_payload(payload)
        except RecoverableError as exc:
            raise AuthenticationFailure(f"Credential exchange with {self._url} failed: {exc}") from exc
        if grant.validity_seconds is None and self._validity_seconds is not None:
            grant = grant.model_copy(update={"validity_seconds": self._validity_seconds})
        return grant
