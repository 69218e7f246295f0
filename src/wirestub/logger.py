"""HTTP traffic logging.

Records go to the standard ``wirestub.http`` logger at DEBUG level; the
configured ``LogLevel`` decides how much of each exchange is written.
"""

from __future__ import annotations

import logging
from enum import IntEnum

from wirestub.codec import body_excerpt
from wirestub.http import Request, Response

logger = logging.getLogger("wirestub.http")


class LogLevel(IntEnum):
    """How much of each request/response is logged."""

    NONE = 0
    BASIC = 1  # request line, status, elapsed time
    HEADERS = 2  # BASIC plus headers
    FULL = 3  # HEADERS plus bodies


class HttpLogger:
    """Writes request/response records for one client."""

    def __init__(self, level: LogLevel = LogLevel.NONE) -> None:
        self.level = level

    def log_request(self, method_key: str, request: Request) -> None:
        if self.level is LogLevel.NONE:
            return
        logger.debug("[%s] ---> %s %s", method_key, request.method, request.url)
        if self.level >= LogLevel.HEADERS:
            self._log_headers(method_key, request.headers)
        if self.level >= LogLevel.FULL and request.body:
            logger.debug("[%s] %s", method_key, body_excerpt(request.body))
        if self.level >= LogLevel.HEADERS:
            size = len(request.body) if request.body else 0
            logger.debug("[%s] ---> END HTTP (%s-byte body)", method_key, size)

    def log_response(self, method_key: str, response: Response, elapsed_ms: int) -> None:
        if self.level is LogLevel.NONE:
            return
        logger.debug(
            "[%s] <--- HTTP %s %s (%sms)",
            method_key,
            response.status,
            response.reason,
            elapsed_ms,
        )
        if self.level >= LogLevel.HEADERS:
            self._log_headers(method_key, response.headers)
        if self.level >= LogLevel.FULL and response.body:
            logger.debug("[%s] %s", method_key, body_excerpt(response.body))
        if self.level >= LogLevel.HEADERS:
            logger.debug(
                "[%s] <--- END HTTP (%s-byte body)", method_key, len(response.body)
            )

    def log_transport_error(
        self, method_key: str, error: BaseException, elapsed_ms: int
    ) -> None:
        if self.level is LogLevel.NONE:
            return
        logger.debug(
            "[%s] <--- ERROR %s: %s (%sms)",
            method_key,
            type(error).__name__,
            error,
            elapsed_ms,
        )

    def log_retry(self, method_key: str) -> None:
        if self.level is LogLevel.NONE:
            return
        logger.debug("[%s] ---> RETRYING", method_key)

    @staticmethod
    def _log_headers(method_key: str, headers: dict[str, list[str]]) -> None:
        for name, values in headers.items():
            for value in values:
                logger.debug("[%s] %s: %s", method_key, name, value)
