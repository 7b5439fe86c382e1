from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from . import config
from .error_codes import DocumentError, HttpStatusError
from .gateway import RequestSpec, _redact_url
from .logging_utils import _scraper_event
from .utils import log_line


def _validate_pdf_bytes(data: bytes) -> None:
    if not data.startswith(b"%PDF"):
        raise DocumentError("Response is not a PDF")


def download_document(
    gateway: Any,
    url: str,
    dest_path: Path,
    *,
    cache_ttl: int,
    token: Optional[str] = None,
) -> int:
    """Fetch the case-action document at ``url`` into ``dest_path``.

    Returns the number of bytes written. Non-PDF bodies raise
    ``DocumentError``; nothing is left on disk for a failed document.
    """

    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    safe_url = _redact_url(url)

    response = gateway.fetch(
        RequestSpec(
            url=url,
            method="GET",
            auth=config.site_auth(),
            cache_ttl=cache_ttl,
            timeout=config.REQUEST_TIMEOUT_SECONDS,
        )
    )
    if response.status_code >= 300:
        raise HttpStatusError(response.status_code, f"Document {token or safe_url} returned HTTP {response.status_code}")

    _validate_pdf_bytes(response.body)
    dest_path.write_bytes(response.body)

    _scraper_event(
        "document",
        token=token or safe_url,
        status="ok",
        http_status=response.status_code,
        bytes=len(response.body),
        from_cache=response.from_cache,
    )
    log_line(f"Saved document {dest_path.name} ({len(response.body) / 1024:.1f} KiB)")
    return len(response.body)


__all__ = ["download_document"]
