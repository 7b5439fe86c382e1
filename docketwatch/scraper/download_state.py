from __future__ import annotations

import json
import threading
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from . import config
from .error_codes import CorruptStateError
from .logging_utils import _scraper_event
from .utils import replace_file


class DownloadStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class DownloadJournal:
    """Durable map of search identity -> "download in progress" flag.

    A flag is raised before each page fetch and lowered once the page has
    been processed. The whole file is rewritten on every transition, so a
    process killed mid-fetch leaves the flag raised and the next run bypasses
    the response cache for that identity.

    Concurrent processes writing the same journal file are not supported.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else config.NAME_JOURNAL_FILE
        self._lock = threading.Lock()
        self._entries: Optional[Dict[str, bool]] = None

    def _load(self) -> Dict[str, bool]:
        if self._entries is not None:
            return self._entries

        if not self.path.exists():
            self._entries = {}
            return self._entries

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CorruptStateError(self.path, f"unreadable download journal: {exc}") from exc

        if not isinstance(data, dict) or not all(isinstance(v, bool) for v in data.values()):
            raise CorruptStateError(self.path, "download journal must map identities to booleans")

        self._entries = {str(key): value for key, value in data.items()}
        return self._entries

    def _persist(self) -> None:
        replace_file(self.path, json.dumps(self._entries or {}, sort_keys=True))

    def _transition(self, identity: str, target: DownloadStatus) -> None:
        with self._lock:
            entries = self._load()
            previous = entries.get(identity, False)
            entries[identity] = target is DownloadStatus.IN_PROGRESS
            self._persist()

        _scraper_event(
            "journal",
            identity=identity,
            from_status=(DownloadStatus.IN_PROGRESS if previous else DownloadStatus.COMPLETE).value,
            to_status=target.value,
        )

    def is_in_progress(self, identity: str) -> bool:
        with self._lock:
            return bool(self._load().get(identity, False))

    def mark_in_progress(self, identity: str) -> None:
        self._transition(identity, DownloadStatus.IN_PROGRESS)

    def mark_complete(self, identity: str) -> None:
        self._transition(identity, DownloadStatus.COMPLETE)

    def effective_cache_ttl(self, identity: str, requested_ttl: int) -> int:
        """Return 0 (force a refetch) when ``identity`` never finished downloading."""

        if self.is_in_progress(identity):
            _scraper_event(
                "warn",
                phase="journal",
                identity=identity,
                reason="unfinished_download",
                requested_ttl=requested_ttl,
                effective_ttl=0,
            )
            return 0
        return requested_ttl

    def in_progress(self) -> list[str]:
        with self._lock:
            return sorted(key for key, value in self._load().items() if value)


__all__ = ["DownloadJournal", "DownloadStatus"]
