"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One line per request, text or JSON:

    text:  127.0.0.1 - - [19/Oct/2026:12:00:00 +0000] "POST /users" 201 62 1.37ms
    json:  {"request_id": "3f2a9c1e", "method": "POST", "path": "/users", ...}

Every response gets an X-Request-ID header holding the same id as the log
line, so a client report can be matched to the server log.

Access lines go to the "userprofiles.access" logger, separate from the
application loggers, so they can be routed or silenced on their own:

    logging.getLogger("userprofiles.access").setLevel(logging.WARNING)

=============================================================================
"""

from dataclasses import asdict, dataclass
import json
import logging
import time
import uuid

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("userprofiles.access")


@dataclass
class RequestLog:
    """Structured access log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status_code"] = int(self.status_code)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Apache-style line with the duration appended."""
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {target}" {int(self.status_code)} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request timing and access logging. Add it first so it also sees
    requests the other middleware reject.
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=self._query_string(request),
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=response.status,
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        if self.include_request_id:
            response.headers["X-Request-ID"] = request_id

        return response

    @staticmethod
    def _query_string(request: HTTPRequest) -> str:
        return "&".join(
            f"{name}={value}"
            for name, values in request.query_params.items()
            for value in values
        )
