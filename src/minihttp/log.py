"""
=============================================================================
LOGGING
=============================================================================

Process-level logging setup plus the per-connection access log.

=============================================================================
LOGGERS
=============================================================================

    minihttp.*          module loggers (logging.getLogger(__name__))
    minihttp.access     one line per handled connection

Tune them independently in the usual way:

    logging.getLogger("minihttp.access").setLevel(logging.WARNING)
    logging.getLogger("minihttp.access").addHandler(file_handler)

=============================================================================
ACCESS LOG FORMATS
=============================================================================

    text:  127.0.0.1 - - [2026-10-19T08:15:02+00:00] "GET /echo/hi" 200 2 0.41ms
    json:  {"request_id": "3f9c1a2b", "method": "GET", "path": "/echo/hi", ...}

Requests that never parsed are logged with method "-" and path "-".

=============================================================================
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .http.request import HTTPRequest
from .http.response import HTTPResponse
from .http.status_codes import HTTPStatus

access_logger = logging.getLogger("minihttp.access")


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger and the package logger level."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("minihttp").setLevel(numeric_level)


@dataclass
class AccessLog:
    """
    Structured access log entry.

    request_id:     Connection id, for correlating with other log lines
    method, path:   From the request line, "-" if it never parsed
    client_ip:      Peer address
    user_agent:     User-Agent header, "-" if absent
    status_code:    Response status
    content_length: Response body size in bytes
    duration_ms:    Time from accept to response written
    timestamp:      ISO 8601, UTC
    """

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    @classmethod
    def create(
        cls,
        request_id: str,
        client_ip: str,
        request: Optional[HTTPRequest],
        response: HTTPResponse,
        duration_ms: float,
    ) -> "AccessLog":
        return cls(
            request_id=request_id,
            method=request.method.value if request else "-",
            path=request.path if request else "-",
            client_ip=client_ip,
            user_agent=(request.user_agent if request else None) or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Combined-log style line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


def log_access(entry: AccessLog, log_format: str = "text") -> None:
    """Emit an access log entry. Server errors go out at WARNING."""
    message = json.dumps(entry.to_dict()) if log_format == "json" else entry.to_text()
    level = logging.WARNING if HTTPStatus(entry.status_code).is_server_error else logging.INFO
    access_logger.log(level, message)
