"""
=============================================================================
ACCESS LOG
=============================================================================

One log record per request/response exchange, on the "pagejar.access"
logger at INFO level.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default, combined-log style):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [10/Jun/2026:10:55:36 +0000] "GET /index.html" 200   │
    │ 5321 1.84ms                                                         │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (one object per line):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET", "path": "/index.html",  │
    │  "client_ip": "127.0.0.1", "status_code": 200, ...}                 │
    └─────────────────────────────────────────────────────────────────────┘

The logger is namespaced, so the access log can be routed on its own:

    logging.getLogger("pagejar.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, field

logger = logging.getLogger("pagejar.access")

LOG_FORMATS = ("text", "json")


@dataclass
class AccessLog:
    """
    Structured record of one exchange.

    Attributes:
        method: Request method.
        path: Decoded request path.
        client_ip: Peer address.
        status_code: Status sent.
        content_length: Body bytes framed (0 for 304).
        duration_ms: Time from parsed request to flushed response.
        request_id: Short random id, for matching with debug output.
        timestamp: Combined-log-style local time.
        user_agent: User-Agent header, "-" when absent.
    """

    method: str
    path: str
    client_ip: str
    status_code: int
    content_length: int
    duration_ms: float
    request_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    timestamp: str = field(default_factory=lambda: time.strftime("%d/%b/%Y:%H:%M:%S %z"))
    user_agent: str = "-"

    def to_dict(self) -> dict:
        """Convert to a dict for JSON serialization."""
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
        """Format as a combined-log-style line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


def log_access(entry: AccessLog, log_format: str = "text", level: int = logging.INFO):
    """Emit an access record in the configured format."""
    if not logger.isEnabledFor(level):
        return
    if log_format == "json":
        logger.log(level, json.dumps(entry.to_dict()))
    else:
        logger.log(level, entry.to_text())
