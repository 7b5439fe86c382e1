"""Configuration constants for the county court scraper."""
from __future__ import annotations

import os
from pathlib import Path


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


DATA_DIR: Path = Path(os.getenv("DOCKETWATCH_DATA_DIR", "data"))
OUTPUT_DIR: Path = DATA_DIR / "output"
CACHE_DIR: Path = DATA_DIR / ".cache"
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
# Tracks name searches whose download has not finished; see download_state.
NAME_JOURNAL_FILE: Path = CACHE_DIR / "name-downloads.json"
EXPORTS_DIR: Path = DATA_DIR / "exports"

# Target site. Credentials are passed through to the server untouched.
NAME_URL: str = os.getenv("SCRAPER_NAME_URL", "").strip()
CASES_URL: str = os.getenv("SCRAPER_CASES_URL", "").strip()
CALENDAR_URL: str = os.getenv("SCRAPER_CALENDAR_URL", "").strip()
USERNAME: str = os.getenv("SCRAPER_CASES_USERNAME", "")
PASSWORD: str = os.getenv("SCRAPER_CASES_PASSWORD", "")
NAME_HIDDEN_TOKEN: str = os.getenv("SCRAPER_NAME_HIDDEN_TOKEN", "")
CASES_COURT_TYPE: str = os.getenv("SCRAPER_CASES_COURT_TYPE", "")
CASES_COUNTY_NUMBER: str = os.getenv("SCRAPER_CASES_COUNTY_NUMBER", "")
CALENDAR_COUNTY: str = os.getenv("SCRAPER_CALENDAR_COUNTY", "")
NAME_ENTITY_TYPE: str = os.getenv("SCRAPER_NAME_ENTITY_TYPE", "individual").strip()

# Minimum spacing between any two outbound requests, process-wide.
REQUEST_DELAY_SECONDS: float = float(os.getenv("SCRAPER_REQUEST_DELAY_SECONDS", "3.0"))
REQUEST_TIMEOUT_SECONDS: int = _parse_timeout_seconds("SCRAPER_REQUEST_TIMEOUT_SECONDS", 600)
REQUEST_MAX_ATTEMPTS: int = int(os.getenv("SCRAPER_REQUEST_MAX_ATTEMPTS", "2"))

# Cache lifetimes (seconds); 0 disables cache reads.
NAME_CACHE_TTL_SECONDS: int = int(os.getenv("NAME_CACHE_TTL_SECONDS", str(60 * 60 * 24)))
CASE_CACHE_TTL_SECONDS: int = int(os.getenv("CASE_CACHE_TTL_SECONDS", str(60 * 60)))
CALENDAR_CACHE_TTL_SECONDS: int = int(
    os.getenv("CALENDAR_CACHE_TTL_SECONDS", str(60 * 60 * 24))
)

# Independent name searches may share the throttle from several threads.
MAX_PARALLEL_SEARCHES: int = int(os.getenv("DOCKETWATCH_MAX_PARALLEL_SEARCHES", "1"))

COMMON_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}


def site_url(kind: str) -> str:
    """Return the configured endpoint for ``kind`` (name-search/case/calendar)."""

    return {
        "name-search": NAME_URL,
        "case": CASES_URL,
        "calendar": CALENDAR_URL,
    }.get(kind, "")


def site_auth() -> tuple[str, str] | None:
    """Return the basic-auth pair when credentials are configured."""

    if not USERNAME and not PASSWORD:
        return None
    return (USERNAME, PASSWORD)
