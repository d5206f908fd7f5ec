"""Base class for dumpers and the HTTP helpers that record exchanges."""

from __future__ import annotations

import json
import os
from http import HTTPStatus
from typing import Any, Optional
from urllib import error, request

from .models import ExchangeRecord

DEFAULT_BASE_URL = "http://127.0.0.1:3000"
DEFAULT_TIMEOUT = 10.0
BASE_URL_ENV = "RESPONSE_DUMPER_BASE_URL"
TIMEOUT_ENV = "RESPONSE_DUMPER_TIMEOUT"


class Dumper:
    """Issues HTTP requests against the application under test and records them.

    A fresh instance is created for every dump block, so attributes set in a
    ``before`` hook or a block never leak into another block.
    """

    base_url: Optional[str] = None
    timeout: Optional[float] = None
    # Whatever the isolation scope yields: the rolled-back DB connection, or None.
    connection: Any = None

    def __init__(self) -> None:
        self.responses: list[ExchangeRecord] = []

    def mock_setup(self) -> None:
        """Install mocks/stubs needed by the blocks. No-op by default."""

    def mock_teardown(self) -> None:
        """Undo :meth:`mock_setup`. No-op by default."""

    def record(self, exchange: ExchangeRecord) -> ExchangeRecord:
        self.responses.append(exchange)
        return exchange

    def get(self, path: str, **kwargs: Any) -> ExchangeRecord:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> ExchangeRecord:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> ExchangeRecord:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> ExchangeRecord:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> ExchangeRecord:
        return self.request("DELETE", path, **kwargs)

    def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> ExchangeRecord:
        method = method.upper()
        url = self._build_url(path)
        request_headers = {"Accept": "application/json"}
        body_bytes = _encode_body(body)
        if isinstance(body, (dict, list)):
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})

        req = request.Request(url, data=body_bytes, headers=request_headers, method=method)
        try:
            with request.urlopen(req, timeout=self._timeout()) as response:
                status = response.getcode()
                reason = response.reason
                response_headers = _header_dict(response.headers)
                payload = response.read()
        except error.HTTPError as exc:
            status = exc.code
            reason = exc.reason
            response_headers = _header_dict(exc.headers)
            payload = exc.read()
        except error.URLError as exc:
            raise RuntimeError(f"HTTP request failed for {method} {url}: {exc}") from exc

        return self.record(
            ExchangeRecord(
                method=method,
                url=url,
                request_body=body_bytes or b"",
                status=status,
                status_text=_status_text(status, reason),
                headers=response_headers,
                body=payload,
            )
        )

    def _build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        base = (self.base_url or os.getenv(BASE_URL_ENV, DEFAULT_BASE_URL)).rstrip("/")
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{base}{path}"

    def _timeout(self) -> float:
        return self.timeout or float(os.getenv(TIMEOUT_ENV, str(DEFAULT_TIMEOUT)))


def _encode_body(body: Any) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, (dict, list)):
        return json.dumps(body).encode("utf-8")
    return str(body).encode("utf-8")


def _status_text(status: int, reason: Any) -> str:
    if reason:
        return str(reason)
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def _header_dict(message: Any) -> dict[str, str]:
    """Flatten an HTTP message's headers, joining repeated fields with ", "."""

    if message is None:
        return {}
    return {name: ", ".join(message.get_all(name)) for name in dict.fromkeys(message.keys())}
