"""HTTP transport backed by requests."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, Optional

import requests
from requests import Response

from authdispatch.errors import ConnectionFailure, DownloadFailure, MalformedResponse, ResponseFailure, TransportFailure
from authdispatch.network.transport.base import BaseTransport, HTTPMethod, TransportRequest

LOGGER = logging.getLogger(__name__)


class HttpTransport(BaseTransport):
    """Sends resolved requests over HTTP.

    ``requests.Session`` is not documented as thread-safe, so each dispatcher
    thread gets its own session unless one is injected.
    """

    def __init__(
        self,
        *,
        timeout_seconds: Optional[float] = None,
        user_agent: Optional[str] = None,
        chunk_bytes: int = 1024 * 1024,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._user_agent = user_agent
        self._chunk_bytes = chunk_bytes
        self._shared_session = session
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> HttpTransport:
        return cls(
            timeout_seconds=settings.transport_timeout_seconds,
            user_agent=settings.user_agent,
            chunk_bytes=settings.download_chunk_bytes,
        )

    def send(self, request: TransportRequest) -> Dict[str, Any]:
        response = self._request(request)
        try:
            if response.status_code < 200 or response.status_code >= 300:
                self._raise_for_status(request, response)
            if request.is_download:
                return self._write_download(request, response)
            return self._decode(request, response)
        finally:
            response.close()

    def close(self) -> None:
        with self._sessions_lock:
            sessions = list(self._sessions)
            self._sessions.clear()
        for session in sessions:
            session.close()

    def _session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _request(self, request: TransportRequest) -> Response:
        kwargs: Dict[str, Any] = {
            "headers": self._build_headers(request),
            "timeout": self._timeout_seconds,
            "stream": request.is_download,
        }
        if request.method is not HTTPMethod.GET and request.body is not None:
            kwargs["json"] = request.body
        try:
            return self._session().request(request.method.value, request.url, **kwargs)
        except requests.ConnectionError as exc:
            raise ConnectionFailure(f"Could not connect to {request.url}: {exc}") from exc
        except requests.Timeout as exc:
            raise ConnectionFailure(f"Timed out waiting for {request.url}") from exc
        except requests.RequestException as exc:
            raise TransportFailure(str(exc)) from exc

    def _build_headers(self, request: TransportRequest) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._user_agent:
            headers["User-Agent"] = self._user_agent
        if request.authorization:
            headers["Authorization"] = request.authorization
        return headers

    @staticmethod
    def _decode(request: TransportRequest, response: Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise MalformedResponse(f"{request.url} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise MalformedResponse(f"{request.url} returned {type(payload).__name__}, expected an object")
        return payload

    def _write_download(self, request: TransportRequest, response: Response) -> Dict[str, Any]:
        dest_path = request.download_to
        assert dest_path is not None
        size_bytes = 0
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            with dest_path.open("wb") as handle:
                for chunk in response.iter_content(chunk_size=self._chunk_bytes):
                    if not chunk:
                        continue
                    handle.write(chunk)
                    size_bytes += len(chunk)
        except OSError as exc:
            raise DownloadFailure(f"Could not download data to {dest_path}") from exc
        except requests.RequestException as exc:
            raise ConnectionFailure(f"Download from {request.url} interrupted: {exc}") from exc
        LOGGER.debug("Downloaded %s bytes to %s", size_bytes, dest_path)
        return {"path": str(dest_path), "sizeBytes": size_bytes}

    @staticmethod
    def _raise_for_status(request: TransportRequest, response: Response) -> None:
        LOGGER.warning("HTTP %s from %s", response.status_code, request.url)
        raise ResponseFailure(response.status_code, response.reason or "", response.text, url=request.url)
