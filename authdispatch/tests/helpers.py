"""Request types and doubles shared by the test suite."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import Field

from authdispatch.api import APIGroup, APIResponse, DownloadResponse, Envelope, RequestKind, account_kind, authenticated_kind
from authdispatch.network.transport.base import HTTPMethod
from authdispatch.session.exchange import CredentialGrant
from authdispatch.session.renewal import Scheduler
from authdispatch.session.state import SessionState

API_URL = "https://api.example.test"
DOWNLOAD_URL = "https://f.example.test"
AUTH_URL = "https://auth.example.test"

B2_API = APIGroup("b2api")
ACCOUNT_API = APIGroup("b2api", base_url=AUTH_URL)


class BucketList(APIResponse):
    buckets: List[Dict[str, Any]] = Field(default_factory=list)


class AccountInfo(APIResponse):
    account_id: str = Field(alias="accountId")


class ListBuckets(Envelope[BucketList]):
    kind = authenticated_kind("list_buckets")
    group = B2_API
    operation = "b2_list_buckets"
    response_type = BucketList

    def __init__(self, on_success, on_failure, *, marker: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(on_success, on_failure, **kwargs)
        self.marker = marker

    def body(self) -> Dict[str, Any]:
        return {"startBucketName": self.marker}


class GetAccountInfo(Envelope[AccountInfo]):
    kind = account_kind("get_account_info")
    group = ACCOUNT_API
    operation = "b2_get_account_info"
    response_type = AccountInfo


class PreAuthProbe(Envelope[AccountInfo]):
    kind = RequestKind(
        "pre_auth_probe",
        method=HTTPMethod.GET,
        authenticated_only=False,
        uses_token=False,
        send_states=frozenset({SessionState.ACCOUNT_KNOWN}),
    )
    group = ACCOUNT_API
    operation = "b2_pre_auth_probe"
    response_type = AccountInfo


class DownloadFile(Envelope[DownloadResponse]):
    kind = authenticated_kind("download_file_by_id", HTTPMethod.GET, download=True)
    group = B2_API
    operation = "b2_download_file_by_id"
    response_type = DownloadResponse

    def __init__(self, on_success, on_failure, *, destination: Path, **kwargs: Any) -> None:
        super().__init__(on_success, on_failure, **kwargs)
        self.destination = destination

    def download_path(self) -> Path:
        return self.destination


class FutureBucketList(BucketList):
    compatible_versions = frozenset({"v1", "v2"})


class ListBucketsV3(Envelope[BucketList]):
    kind = authenticated_kind("list_buckets")
    group = B2_API
    operation = "b2_list_buckets"
    version = "v3"
    response_type = FutureBucketList


class ListBucketsV2(Envelope[FutureBucketList]):
    kind = authenticated_kind("list_buckets")
    group = B2_API
    operation = "b2_list_buckets"
    version = "v2"
    response_type = FutureBucketList


class Outcomes:
    """Collects envelope callbacks from whichever thread runs them."""

    def __init__(self) -> None:
        self.successes: List[Any] = []
        self.failures: List[Exception] = []
        self.threads: List[str] = []
        self._cond = threading.Condition()

    def on_success(self, response: Any) -> None:
        with self._cond:
            self.successes.append(response)
            self.threads.append(threading.current_thread().name)
            self._cond.notify_all()

    def on_failure(self, error: Exception) -> None:
        with self._cond:
            self.failures.append(error)
            self.threads.append(threading.current_thread().name)
            self._cond.notify_all()

    @property
    def count(self) -> int:
        with self._cond:
            return len(self.successes) + len(self.failures)

    def wait_for(self, count: int, *, timeout: float = 2.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: len(self.successes) + len(self.failures) >= count, timeout)


class FakeExchange:
    """Credential exchange answering with numbered tokens."""

    def __init__(self, *, validity_seconds: Optional[float] = 3600.0) -> None:
        self.validity_seconds = validity_seconds
        self.calls: List[str] = []
        self.side_effect: Optional[Callable[[str, str], None]] = None

    def __call__(self, account_id: str, secret: str) -> CredentialGrant:
        self.calls.append(account_id)
        if self.side_effect is not None:
            self.side_effect(account_id, secret)
        return CredentialGrant(
            authorizationToken=f"token-{len(self.calls)}",
            apiUrl=API_URL,
            downloadUrl=DOWNLOAD_URL,
            validitySeconds=self.validity_seconds,
        )


class _ManualHandle:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler driven by :meth:`advance` instead of wall-clock time."""

    def __init__(self) -> None:
        self.now = 0.0
        self._handles: List[_ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self.now + delay, callback)
        self._handles.append(handle)
        return handle

    @property
    def active(self) -> List[_ManualHandle]:
        return [handle for handle in self._handles if not handle.cancelled]

    def advance(self, seconds: float) -> int:
        self.now += seconds
        due = [handle for handle in self.active if handle.due <= self.now]
        self._handles = [handle for handle in self._handles if handle not in due]
        for handle in due:
            handle.callback()
        return len(due)


class DeferredExecutor:
    """Executor stand-in that runs submitted work only when told to."""

    def __init__(self) -> None:
        self._pending: List[tuple] = []

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        future: Future = Future()
        self._pending.append((future, fn, args))
        return future

    def run_all(self) -> None:
        pending, self._pending = self._pending, []
        for future, fn, args in pending:
            try:
                future.set_result(fn(*args))
            except Exception as exc:  # noqa: BLE001
                future.set_exception(exc)

    def shutdown(self, wait: bool = True) -> None:
        self._pending.clear()
