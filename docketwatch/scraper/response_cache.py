"""On-disk cache of raw HTTP responses keyed by request."""
from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional


@dataclass(frozen=True)
class CachedResponse:
    status_code: int
    body: bytes
    stored_at: float


def cache_key(method: str, url: str, form_fields: Optional[Mapping[str, str]] = None) -> str:
    """Return a stable key for a request; field order does not matter."""

    payload = json.dumps(
        {
            "method": method.upper(),
            "url": url,
            "form": sorted((form_fields or {}).items()),
        },
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResponseCache:
    def __init__(self, directory: Path, *, clock: Callable[[], float] = time.time) -> None:
        self.directory = Path(directory)
        self._clock = clock

    def _paths(self, key: str) -> tuple[Path, Path]:
        return self.directory / f"{key}.body", self.directory / f"{key}.json"

    def get(self, key: str, ttl: int) -> Optional[CachedResponse]:
        """Return the cached response when it is younger than ``ttl`` seconds."""

        if ttl <= 0:
            return None

        body_path, meta_path = self._paths(key)
        if not body_path.exists() or not meta_path.exists():
            return None

        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
            stored_at = float(meta["stored_at"])
            status_code = int(meta["status_code"])
        except (OSError, ValueError, KeyError, TypeError):
            # A damaged entry is just a miss; the next put overwrites it.
            return None

        if self._clock() - stored_at > ttl:
            return None

        return CachedResponse(status_code=status_code, body=body_path.read_bytes(), stored_at=stored_at)

    def put(self, key: str, status_code: int, body: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        body_path, meta_path = self._paths(key)
        body_path.write_bytes(body)
        meta_path.write_text(
            json.dumps({"status_code": status_code, "stored_at": self._clock()}),
            encoding="utf-8",
        )


__all__ = ["CachedResponse", "ResponseCache", "cache_key"]
