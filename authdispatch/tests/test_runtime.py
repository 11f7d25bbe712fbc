import logging

import pytest

from authdispatch import bootstrap, fatal
from authdispatch.config import DispatchSettings
from authdispatch.errors import AuthenticationFailure, ExitCode, ProtocolMismatch
from authdispatch.network.transport.http import HttpTransport
from authdispatch.network.transport.static import StaticTransport
from authdispatch.runtime import Runtime
from authdispatch.session.state import SessionState
from authdispatch.tests.helpers import FakeExchange, ListBuckets, ManualScheduler


class _ClosingTransport(StaticTransport):
    def __init__(self, routes=None):
        super().__init__(routes)
        self.closed = False

    def close(self):
        self.closed = True


def _settings(**overrides):
    return DispatchSettings(_env_file=None, dispatch_max_workers=2, **overrides)


def test_runtime_applies_configured_account(fatal_errors, outcomes):
    transport = _ClosingTransport({"b2_list_buckets": {"buckets": []}})
    settings = _settings(account_id="acct-1", account_secret="secret")

    with Runtime(settings, scheduler=ManualScheduler()) as runtime:
        session = runtime.start(transport, FakeExchange())
        assert session.state is SessionState.ACCOUNT_KNOWN

        session.submit(ListBuckets(outcomes.on_success, outcomes.on_failure))
        session.authenticate()
        assert outcomes.wait_for(1)

    assert runtime.closed
    assert transport.closed
    assert runtime.dispatcher.closed
    assert outcomes.successes


def test_runtime_without_account_has_no_account(fatal_errors):
    with Runtime(_settings(), scheduler=ManualScheduler()) as runtime:
        assert runtime.session.state is SessionState.UNINITIALIZED
        runtime.start(StaticTransport())
        assert runtime.session.state is SessionState.NO_ACCOUNT


def test_runtime_close_is_idempotent(fatal_errors):
    runtime = Runtime(_settings(), scheduler=ManualScheduler())
    runtime.close()
    runtime.close()
    assert runtime.closed


def test_setup_wires_http_transport(fatal_errors):
    runtime = bootstrap.setup(_settings(account_id="acct-1", account_secret="secret"))
    try:
        assert isinstance(runtime.transport, HttpTransport)
        assert runtime.session.state is SessionState.ACCOUNT_KNOWN
        assert runtime.session.account_id == "acct-1"
    finally:
        runtime.close()


def test_configure_logging_uses_settings_level(monkeypatch):
    captured = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))

    bootstrap.configure_logging(_settings(log_level="warning"))

    assert captured["level"] == logging.WARNING
    assert "%(name)s" in captured["format"]


def test_set_handler_returns_previous():
    recorded = []
    previous = fatal.set_handler(recorded.append)
    try:
        assert fatal.get_handler() == recorded.append
    finally:
        restored = fatal.set_handler(previous)
    assert restored == recorded.append
    assert fatal.get_handler() is previous


def test_set_handler_none_restores_default():
    previous = fatal.set_handler(lambda error: None)
    try:
        fatal.set_handler(None)
        assert fatal.get_handler() is fatal.terminate_process
    finally:
        fatal.set_handler(previous)


def test_raise_fatal_prefers_explicit_handler(fatal_errors):
    explicit = []
    error = AuthenticationFailure("denied")

    with pytest.raises(AuthenticationFailure):
        fatal.raise_fatal(error, explicit.append)

    assert explicit == [error]
    assert fatal_errors == []


def test_terminate_process_exits_with_error_code(monkeypatch, caplog):
    exits = []
    monkeypatch.setattr(fatal.os, "_exit", exits.append)
    monkeypatch.setattr(fatal.logging, "shutdown", lambda: None)
    error = ProtocolMismatch(ListBuckets, dict, ["v1"], "v9")

    with caplog.at_level(logging.CRITICAL, logger="authdispatch.fatal"):
        fatal.terminate_process(error)

    assert exits == [ExitCode.API_MISMATCH]
    assert "ProtocolMismatch" in caplog.text
