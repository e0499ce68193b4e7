"""ASGI request logging middleware.

Framework-agnostic: wraps any ASGI application (FastAPI, Starlette, Django
ASGI) and records one request per HTTP cycle through a PerformanceManager.
"""

import fnmatch
import logging
import random
import time
from collections.abc import Callable, Coroutine
from typing import Any

from perflog.core.http import (
    SNIPPET_LIMIT,
    extract_url_pattern,
    generate_request_id,
    truncate_snippet,
)
from perflog.core.manager import PerformanceManager

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


def _headers(scope: Scope) -> dict[str, str]:
    """Decode request headers into a lower-cased name mapping.

    Repeated headers keep their first value.
    """
    headers: dict[str, str] = {}
    for name, value in scope.get("headers", []):
        key = name.decode("latin-1").lower()
        headers.setdefault(key, value.decode("utf-8", errors="replace"))
    return headers


def _client_ip(scope: Scope, headers: dict[str, str]) -> str:
    """Resolve the client address, trusting proxy headers first."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    client = scope.get("client")
    if client:
        return str(client[0])
    return "unknown"


def _request_url(scope: Scope) -> str:
    path = scope.get("path", "/")
    query = scope.get("query_string", b"")
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path


class RequestLoggingMiddleware:
    """ASGI middleware that logs every HTTP request through a manager.

    The middleware wraps ``send`` to observe the status line and body
    chunks; it never replaces anything on the response. Telemetry failures
    are reported on the internal logger and never reach the client.
    """

    def __init__(
        self,
        app: ASGIApp,
        manager: PerformanceManager,
        exclude_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
        snippet_limit: int = SNIPPET_LIMIT,
        clock: Callable[[], float] = time.perf_counter,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            manager: Manager receiving the request telemetry.
            exclude_paths: Paths not to log. Supports exact matches and
                wildcard patterns (e.g., "/internal/*").
            request_id_header: Header carrying the request id; it is read
                from the request and echoed on the response.
            snippet_limit: Maximum characters of response body kept for
                error entries.
            clock: Monotonic clock in seconds.
            rng: Random source for generated request ids.
        """
        self.app = app
        self.manager = manager
        self.exclude_paths = exclude_paths or []
        self.request_id_header = request_id_header
        self.snippet_limit = snippet_limit
        self.clock = clock
        self.rng = rng

    def _path_excluded(self, path: str) -> bool:
        """Check if path matches any pattern in exclude_paths."""
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self._path_excluded(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        start = self.clock()
        headers = _headers(scope)
        request_id = headers.get(self.request_id_header.lower()) or generate_request_id(
            self.rng
        )
        header_name = self.request_id_header.lower().encode("latin-1")
        captured: dict[str, Any] = {"status": None, "size": 0, "body": bytearray()}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
                response_headers = list(message.get("headers", []))
                if not any(name.lower() == header_name for name, _ in response_headers):
                    response_headers.append((header_name, request_id.encode("latin-1")))
                    message = {**message, "headers": response_headers}
            elif message["type"] == "http.response.body":
                chunk = message.get("body", b"")
                captured["size"] += len(chunk)
                room = self.snippet_limit + 1 - len(captured["body"])
                if room > 0:
                    captured["body"].extend(chunk[:room])
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        except Exception as exc:
            duration_ms = round((self.clock() - start) * 1000, 3)
            self._record_exception(scope, headers, request_id, exc, duration_ms)
            raise

        duration_ms = round((self.clock() - start) * 1000, 3)
        self._record_response(scope, headers, request_id, captured, duration_ms)

    def _request_fields(
        self, scope: Scope, headers: dict[str, str], request_id: str
    ) -> dict[str, Any]:
        fields = {
            "requestId": request_id,
            "ip": _client_ip(scope, headers),
            "userAgent": headers.get("user-agent", "unknown"),
        }
        if "referer" in headers:
            fields["referer"] = headers["referer"]
        return fields

    def _record_response(
        self,
        scope: Scope,
        headers: dict[str, str],
        request_id: str,
        captured: dict[str, Any],
        duration_ms: float,
    ) -> None:
        try:
            method = scope.get("method", "GET")
            url = _request_url(scope)
            status = captured["status"] or 0
            fields = self._request_fields(scope, headers, request_id)
            self.manager.log_http_request(
                method, url, status, duration_ms, captured["size"], **fields
            )
            if status >= 400:
                body = bytes(captured["body"]).decode("utf-8", errors="replace")
                self.manager.error.log_http_error(
                    status,
                    method,
                    url,
                    truncate_snippet(body, self.snippet_limit) if body else None,
                    urlPattern=extract_url_pattern(url),
                    duration=duration_ms,
                    **fields,
                )
        except Exception:
            logger.exception("Failed to record request %s", request_id)

    def _record_exception(
        self,
        scope: Scope,
        headers: dict[str, str],
        request_id: str,
        exc: Exception,
        duration_ms: float,
    ) -> None:
        try:
            method = scope.get("method", "GET")
            url = _request_url(scope)
            fields = self._request_fields(scope, headers, request_id)
            self.manager.error.log_exception(
                exc,
                {
                    "method": method,
                    "url": url,
                    "urlPattern": extract_url_pattern(url),
                    "errorType": "unhandled_exception",
                    "errorCode": "INTERNAL_SERVER_ERROR",
                    "severity": "high",
                    "duration": duration_ms,
                    **fields,
                },
            )
            self.manager.metrics.log_counter(
                "server_errors", 1, {"method": method, "urlPattern": extract_url_pattern(url)}
            )
            self.manager.log_http_request(method, url, 500, duration_ms, **fields)
        except Exception:
            logger.exception("Failed to record failed request %s", request_id)
