from __future__ import annotations

from typing import Literal

from . import config
from .error_codes import ConfigurationError
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["cli", "tests"]
SearchKind = Literal["name-search", "case", "calendar"]

_URL_SETTINGS = {
    "name-search": "SCRAPER_NAME_URL",
    "case": "SCRAPER_CASES_URL",
    "calendar": "SCRAPER_CALENDAR_URL",
}


def _raise_config_error(
    message: str, *, entrypoint: Entrypoint, error: str, kind: str | None
) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
        kind=kind,
    )
    kind_fragment = f", kind={kind}" if kind else ""
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint}{kind_fragment})")
    raise ConfigurationError(message)


def validate_runtime_config(entrypoint: Entrypoint, *, kind: SearchKind | None = None) -> None:
    """Validate runtime configuration before any request is made.

    Raises ``ConfigurationError`` for blocking problems; clamps and logs
    recoverable ones.
    """

    if kind is not None and not config.site_url(kind):
        _raise_config_error(
            f"Make sure the {_URL_SETTINGS[kind]} environment variable is set.",
            entrypoint=entrypoint,
            error="missing_url",
            kind=kind,
        )

    if config.REQUEST_DELAY_SECONDS < 0:
        _raise_config_error(
            "SCRAPER_REQUEST_DELAY_SECONDS must be non-negative.",
            entrypoint=entrypoint,
            error="invalid_delay",
            kind=kind,
        )

    for field_name in ("NAME_CACHE_TTL_SECONDS", "CASE_CACHE_TTL_SECONDS", "CALENDAR_CACHE_TTL_SECONDS"):
        if getattr(config, field_name) < 0:
            _raise_config_error(
                f"{field_name} must be non-negative.",
                entrypoint=entrypoint,
                error="invalid_ttl",
                kind=kind,
            )

    for field_name in ("REQUEST_MAX_ATTEMPTS", "MAX_PARALLEL_SEARCHES"):
        value = getattr(config, field_name)
        if value < 1:
            _scraper_event(
                "state",
                phase="config",
                context="runtime_validation",
                kind="config_adjustment",
                field=field_name,
                value=value,
                adjusted=1,
                entrypoint=entrypoint,
            )
            log_line(f"[CONFIG] {field_name} < 1; clamping to 1.")
            setattr(config, field_name, 1)


__all__ = ["validate_runtime_config", "Entrypoint", "SearchKind"]
