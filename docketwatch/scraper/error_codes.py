"""Error taxonomy for scraper failures.

Codes are included in structured log lines and on every ``ScraperError`` so a
failed run can be explained from its log alone. Fatal errors carry the search
identity and page cursor they happened at; rerunning the same search after a
fatal error bypasses the response cache for that identity (see
``download_state``).
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional


class ErrorCode:
    CONFIG = "configuration_error"
    NETWORK = "network_error"
    TIMEOUT = "network_timeout"
    HTTP_4XX = "http_4xx"
    HTTP_401 = "http_401_unauthorised"
    HTTP_403 = "http_403_forbidden"
    HTTP_404 = "http_404_not_found"
    HTTP_5XX = "http_5xx"
    HTTP_3XX = "http_3xx_redirect"
    SITE_ERROR = "site_error_banner"
    SITE_STRUCTURE = "site_structure_changed"
    CORRUPT_STATE = "corrupt_state"
    MALFORMED_PDF = "malformed_pdf"
    INTERNAL = "internal_error"


def classify_http_status(status: Optional[int]) -> str:
    if status is None:
        return ErrorCode.INTERNAL
    if status == 401:
        return ErrorCode.HTTP_401
    if status == 403:
        return ErrorCode.HTTP_403
    if status == 404:
        return ErrorCode.HTTP_404
    if 300 <= status < 400:
        return ErrorCode.HTTP_3XX
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.INTERNAL


class ScraperError(Exception):
    default_code = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        identity: Optional[str] = None,
        cursor: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.identity = identity
        self.cursor = cursor

    def with_context(self, *, identity: Optional[str], cursor: Optional[int]) -> "ScraperError":
        """Attach search context if the raiser did not know it."""

        if self.identity is None:
            self.identity = identity
        if self.cursor is None:
            self.cursor = cursor
        return self

    def __str__(self) -> str:
        message = str(self.args[0]) if self.args else ""
        context = []
        if self.identity is not None:
            context.append(f"search={self.identity}")
        if self.cursor is not None:
            context.append(f"cursor={self.cursor}")
        if context:
            return f"{message} ({', '.join(context)})"
        return message


class ConfigurationError(ScraperError):
    default_code = ErrorCode.CONFIG


class TransportError(ScraperError):
    default_code = ErrorCode.NETWORK


class HttpStatusError(ScraperError):
    def __init__(self, status_code: int, message: Optional[str] = None, **kwargs) -> None:
        kwargs.setdefault("error_code", classify_http_status(status_code))
        super().__init__(message or f"HTTP {status_code}", **kwargs)
        self.status_code = status_code


class SiteError(ScraperError):
    default_code = ErrorCode.SITE_ERROR

    def __init__(self, banner: str, **kwargs) -> None:
        super().__init__(f"Site reported an error: {banner}", **kwargs)
        self.banner = banner


class ExtractionError(ScraperError):
    default_code = ErrorCode.SITE_STRUCTURE


class CorruptStateError(ScraperError):
    default_code = ErrorCode.CORRUPT_STATE

    def __init__(self, path: Path, message: str, **kwargs) -> None:
        super().__init__(f"{path}: {message}", **kwargs)
        self.path = Path(path)


class DocumentError(ScraperError):
    default_code = ErrorCode.MALFORMED_PDF


__all__ = [
    "ErrorCode",
    "classify_http_status",
    "ScraperError",
    "ConfigurationError",
    "TransportError",
    "HttpStatusError",
    "SiteError",
    "ExtractionError",
    "CorruptStateError",
    "DocumentError",
]
