from __future__ import annotations

from typing import List

import pytest

from authdispatch import fatal
from authdispatch.config import DispatchSettings
from authdispatch.errors import FatalError
from authdispatch.network.transport.static import StaticTransport
from authdispatch.session.context import Session
from authdispatch.tests.helpers import FakeExchange, ManualScheduler, Outcomes


@pytest.fixture
def fatal_errors() -> List[FatalError]:
    """Record fatal errors instead of terminating the test process."""

    errors: List[FatalError] = []
    previous = fatal.set_handler(errors.append)
    try:
        yield errors
    finally:
        fatal.set_handler(previous)


@pytest.fixture
def settings() -> DispatchSettings:
    return DispatchSettings(
        _env_file=None,
        dispatch_max_workers=1,
        token_validity_seconds=3600,
        renewal_margin_seconds=600,
    )


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def transport() -> StaticTransport:
    return StaticTransport(
        {
            "b2_list_buckets": {"buckets": [{"bucketName": "photos"}]},
            "b2_get_account_info": {"accountId": "acct-1"},
        }
    )


@pytest.fixture
def exchange() -> FakeExchange:
    return FakeExchange()


@pytest.fixture
def outcomes() -> Outcomes:
    return Outcomes()


@pytest.fixture
def session(settings, scheduler, fatal_errors):
    session = Session(settings, scheduler=scheduler)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def attached(session, transport, exchange):
    session.attach(transport, exchange)
    return session
