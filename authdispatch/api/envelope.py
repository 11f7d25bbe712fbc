"""Request envelopes: a typed request plus its admission rule and callbacks.

Subclasses declare the operation they perform and the response they expect::

    class ListBuckets(Envelope[BucketList]):
        kind = authenticated_kind("list_buckets")
        group = B2_API
        operation = "b2_list_buckets"
        response_type = BucketList

        def body(self):
            return {"accountId": self.account_id}

Constructing an envelope checks that ``response_type`` understands
``version``; a mismatch is a protocol skew and goes through the fatal path.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, Generic, Mapping, Optional, TypeVar

from authdispatch import fatal
from authdispatch.api.catalogue import APIGroup, RequestKind
from authdispatch.api.response import APIResponse
from authdispatch.errors import DispatchError, MalformedResponse, ProtocolMismatch, StateViolation
from authdispatch.network.transport.base import HTTPMethod, TransportRequest
from authdispatch.session.state import SessionState

LOGGER = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=APIResponse)

SuccessCallback = Callable[[ResponseT], None]
FailureCallback = Callable[[DispatchError], None]


class Completion(Generic[ResponseT]):
    """One-shot success/failure callback pair.

    Whichever of :meth:`succeed` or :meth:`fail` runs first wins; every later
    call is ignored. Callback exceptions are logged, not propagated, since they
    run on dispatcher threads.
    """

    def __init__(self, on_success: SuccessCallback[ResponseT], on_failure: FailureCallback) -> None:
        self._on_success = on_success
        self._on_failure = on_failure
        self._lock = threading.Lock()
        self._outcome: Optional[str] = None

    @property
    def done(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> Optional[str]:
        return self._outcome

    def succeed(self, response: ResponseT) -> bool:
        if not self._settle("success"):
            return False
        self._invoke(self._on_success, response)
        return True

    def fail(self, error: DispatchError) -> bool:
        if not self._settle("failure"):
            return False
        self._invoke(self._on_failure, error)
        return True

    def _settle(self, outcome: str) -> bool:
        with self._lock:
            if self._outcome is not None:
                LOGGER.warning("Ignoring %s after envelope already completed with %s", outcome, self._outcome)
                return False
            self._outcome = outcome
            return True

    @staticmethod
    def _invoke(callback: Callable[[Any], None], value: Any) -> None:
        try:
            callback(value)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Envelope callback %r raised", callback)


class Envelope(Generic[ResponseT]):
    """Base class for every request submitted to a session."""

    kind: ClassVar[RequestKind]
    group: ClassVar[APIGroup]
    operation: ClassVar[str]
    version: ClassVar[str] = "v1"
    response_type: ClassVar[type[APIResponse]]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        kind = getattr(cls, "kind", None)
        if kind is not None and kind.download and cls.download_path is Envelope.download_path:
            raise TypeError(f"{cls.__name__} is a download request but does not define download_path()")

    def __init__(
        self,
        on_success: SuccessCallback[ResponseT],
        on_failure: FailureCallback,
        *,
        fatal_handler: Optional[fatal.FatalHandler] = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.created_at = datetime.now(timezone.utc)
        self.completion: Completion[ResponseT] = Completion(on_success, on_failure)
        self._claim_lock = threading.Lock()
        self._claimed = False
        self.check_compatibility(fatal_handler)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(operation={self.operation!r}, version={self.version!r}, id={self.id[:8]})"

    @classmethod
    def check_compatibility(cls, fatal_handler: Optional[fatal.FatalHandler] = None) -> None:
        """Fail fatally unless ``response_type`` accepts this request's version."""

        if not cls.response_type.supports(cls.version):
            fatal.raise_fatal(
                ProtocolMismatch(cls, cls.response_type, cls.response_type.compatible_versions, cls.version),
                fatal_handler,
            )

    # Wire metadata -------------------------------------------------------

    @property
    def method(self) -> HTTPMethod:
        return self.kind.method

    @property
    def uses_token(self) -> bool:
        return self.kind.uses_token

    @property
    def is_download(self) -> bool:
        return self.kind.download

    @property
    def authenticated_only(self) -> bool:
        return self.kind.authenticated_only

    def may_send(self, state: SessionState) -> bool:
        return self.kind.may_send(state)

    def body(self) -> Optional[Dict[str, Any]]:
        """JSON body for non-GET requests; ``None`` sends no body."""

        return None

    def download_path(self) -> Path:
        """Destination file for download requests; download kinds must override it."""

        raise NotImplementedError(f"{type(self).__name__} is a download request without a destination")

    def authorization_header(self, token: Optional[str]) -> Optional[str]:
        return token if self.uses_token else None

    def base_url(self, api_url: Optional[str], download_url: Optional[str]) -> Optional[str]:
        session_url = download_url if self.is_download else api_url
        if session_url and (self.uses_token or not self.group.base_url):
            return session_url
        return self.group.base_url or session_url

    def url(self, base_url: str) -> str:
        return "/".join((base_url.rstrip("/"), self.group.label, self.version, self.operation))

    def build_request(
        self,
        *,
        token: Optional[str],
        api_url: Optional[str],
        download_url: Optional[str],
    ) -> TransportRequest:
        """Resolve this envelope against a snapshot of the session."""

        if self.uses_token and not token:
            raise StateViolation(f"{type(self).__name__} needs a session token but none is held")
        base = self.base_url(api_url, download_url)
        if not base:
            raise StateViolation(f"No base URL available for {type(self).__name__}")
        return TransportRequest(
            method=self.method,
            url=self.url(base),
            authorization=self.authorization_header(token),
            body=self.body() if self.method is not HTTPMethod.GET else None,
            download_to=self.download_path() if self.is_download else None,
            operation=self.operation,
        )

    # Lifecycle -----------------------------------------------------------

    def claim(self) -> bool:
        """Mark the envelope as handed to a transport; only the first call wins."""

        with self._claim_lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    @property
    def claimed(self) -> bool:
        return self._claimed

    @property
    def completed(self) -> bool:
        return self.completion.done

    def complete(self, payload: Mapping[str, Any]) -> None:
        """Parse ``payload`` into the typed response and report it."""

        try:
            response = self.response_type.from_payload(payload)
        except MalformedResponse as exc:
            LOGGER.warning("Malformed %s response: %s", self.operation, exc)
            self.completion.fail(exc)
            return
        self.completion.succeed(response)  # type: ignore[arg-type]

    def fail(self, error: DispatchError) -> None:
        self.completion.fail(error)
