from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from . import config
from .config_validation import SearchKind, validate_runtime_config
from .download_state import DownloadJournal
from .error_codes import ConfigurationError, CorruptStateError
from .logging_utils import _scraper_event
from .utils import ensure_dirs, log_line


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def _output_writable(output_dir: Path) -> bool:
    marker = output_dir / f".healthcheck-{uuid.uuid4().hex[:8]}"
    try:
        marker.write_text("ok", encoding="utf-8")
        marker.unlink()
    except OSError:
        return False
    return True


def run_health_checks(kind: Optional[SearchKind] = None, *, journal: Optional[DownloadJournal] = None) -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config("cli", kind=kind)
        checks["config"] = {"ok": True}
    except ConfigurationError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    try:
        ensure_dirs()
        checks["filesystem"] = {
            "ok": _output_writable(config.OUTPUT_DIR),
            "output_dir": str(config.OUTPUT_DIR),
        }
    except OSError as exc:
        checks["filesystem"] = {"ok": False, "error": str(exc)}

    journal = journal or DownloadJournal()
    try:
        # Unfinished downloads are reported; the next run re-fetches them.
        checks["journal"] = {"ok": True, "path": str(journal.path), "in_progress": journal.in_progress()}
    except CorruptStateError as exc:
        checks["journal"] = {"ok": False, "path": str(journal.path), "error": str(exc)}

    overall_ok = all(check.get("ok", False) for check in checks.values())
    _scraper_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        checks=checks,
    )
    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks()
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
