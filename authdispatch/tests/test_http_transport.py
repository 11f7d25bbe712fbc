import io
import json

import pytest
import requests

from authdispatch.errors import ConnectionFailure, DownloadFailure, MalformedResponse, ResponseFailure, TransportFailure
from authdispatch.network.transport.base import HTTPMethod, TransportRequest
from authdispatch.network.transport.http import HttpTransport


def _response(status=200, payload=None, *, body=None, reason="OK"):
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.encoding = "utf-8"
    if body is None:
        body = json.dumps(payload).encode("utf-8") if payload is not None else b""
    response.raw = io.BytesIO(body)
    return response


class _StubSession:
    def __init__(self, *replies):
        self.calls = []
        self.closed = False
        self._replies = list(replies)

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def close(self):
        self.closed = True


def _transport(*replies, **kwargs):
    stub = _StubSession(*replies)
    return HttpTransport(session=stub, **kwargs), stub


def _post(url="https://api.example.test/b2api/v1/b2_list_buckets", **kwargs):
    return TransportRequest(method=HTTPMethod.POST, url=url, **kwargs)


def test_post_sends_json_body_and_headers():
    transport, stub = _transport(_response(payload={"buckets": []}), user_agent="authdispatch-tests", timeout_seconds=5)

    payload = transport.send(_post(authorization="tok", body={"accountId": "acct-1"}))

    assert payload == {"buckets": []}
    method, url, kwargs = stub.calls[0]
    assert method == "POST"
    assert url.endswith("/b2_list_buckets")
    assert kwargs["json"] == {"accountId": "acct-1"}
    assert kwargs["timeout"] == 5
    assert kwargs["stream"] is False
    assert kwargs["headers"]["Authorization"] == "tok"
    assert kwargs["headers"]["User-Agent"] == "authdispatch-tests"


def test_get_sends_no_body_or_authorization():
    transport, stub = _transport(_response(payload={"ok": True}))

    transport.send(TransportRequest(method=HTTPMethod.GET, url="https://auth.example.test/x", body={"ignored": 1}))

    _, _, kwargs = stub.calls[0]
    assert "json" not in kwargs
    assert "Authorization" not in kwargs["headers"]


def test_empty_body_decodes_to_empty_payload():
    transport, _ = _transport(_response())
    assert transport.send(_post()) == {}


def test_non_2xx_raises_response_failure():
    transport, _ = _transport(_response(401, body=b'{"code": "bad_auth_token"}', reason="Unauthorized"))

    with pytest.raises(ResponseFailure) as excinfo:
        transport.send(_post())

    error = excinfo.value
    assert error.status_code == 401
    assert error.reason == "Unauthorized"
    assert "bad_auth_token" in error.body
    assert error.url.endswith("/b2_list_buckets")


def test_invalid_json_is_malformed():
    transport, _ = _transport(_response(body=b"<html>"))
    with pytest.raises(MalformedResponse):
        transport.send(_post())


def test_non_object_json_is_malformed():
    transport, _ = _transport(_response(payload=[1, 2, 3]))
    with pytest.raises(MalformedResponse):
        transport.send(_post())


@pytest.mark.parametrize("exc", [requests.ConnectionError("refused"), requests.Timeout("slow")])
def test_network_errors_become_connection_failures(exc):
    transport, _ = _transport(exc)
    with pytest.raises(ConnectionFailure) as excinfo:
        transport.send(_post())
    assert excinfo.value.__cause__ is exc


def test_other_request_errors_become_transport_failures():
    transport, _ = _transport(requests.TooManyRedirects("loop"))
    with pytest.raises(TransportFailure):
        transport.send(_post())


def test_download_streams_to_destination(tmp_path):
    destination = tmp_path / "nested" / "file.bin"
    transport, stub = _transport(_response(body=b"x" * 2500), chunk_bytes=1000)

    payload = transport.send(
        TransportRequest(
            method=HTTPMethod.GET,
            url="https://f.example.test/file/bucket/file.bin",
            authorization="tok",
            download_to=destination,
        )
    )

    assert payload == {"path": str(destination), "sizeBytes": 2500}
    assert destination.read_bytes() == b"x" * 2500
    assert stub.calls[0][2]["stream"] is True


def test_download_write_failure(tmp_path):
    transport, _ = _transport(_response(body=b"data"))

    with pytest.raises(DownloadFailure):
        transport.send(TransportRequest(method=HTTPMethod.GET, url="https://f.example.test/f", download_to=tmp_path))


def test_close_leaves_injected_session_alone():
    transport, stub = _transport()
    transport.close()
    assert not stub.closed


def test_from_settings(settings):
    transport = HttpTransport.from_settings(settings)
    assert isinstance(transport, HttpTransport)
    transport.close()
