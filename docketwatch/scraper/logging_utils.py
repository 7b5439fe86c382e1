from __future__ import annotations

from typing import Any

from .utils import log_line, log_warning

_WARNING_LABELS = {"warn", "error"}


def _scraper_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Emit a structured scraper log line.

    ``phase`` may be used as a keyword alias for the label. When both
    ``label`` and ``phase`` are provided, ``phase`` is emitted as part of the
    payload. ``warn`` and ``error`` events go to the warning channel.
    """

    try:
        phase_label = label or (phase or "")
        if phase and label:
            fields.setdefault("phase", phase)
        payload = ", ".join(f"{k}={repr(v)}" for k, v in sorted(fields.items()))
        line = f"[SCRAPER][{phase_label.upper()}] {payload}"
        if phase_label.lower() in _WARNING_LABELS:
            log_warning(line)
        else:
            log_line(line)
    except Exception:
        # Never let logging break the scraper.
        return


__all__ = ["_scraper_event"]
