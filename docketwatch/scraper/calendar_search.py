"""Daily court calendar scrape with historical and current snapshots."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import config
from .error_codes import ConfigurationError, HttpStatusError, ScraperError
from .extractors import PageKind, RecordExtractor, detect_site_error
from .gateway import RequestGateway, RequestSpec
from .logging_utils import _scraper_event
from .merge_store import Dataset, append, field_key, load_dataset, merge_by_key, save
from .utils import iso_timestamp, log_line, log_warning, utc_now

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")


def parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    candidate = (value or "").strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue
    raise ConfigurationError(f"Unable to parse date {value!r}; use YYYY-MM-DD or MM/DD/YYYY")


class CalendarSearch:
    def __init__(
        self,
        *,
        gateway: Optional[Any] = None,
        extractor: Optional[Any] = None,
        output_dir: Optional[Path] = None,
        cache_ttl: Optional[int] = None,
        county: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway or RequestGateway()
        self.extractor = extractor or RecordExtractor()
        self.output_dir = Path(output_dir or config.OUTPUT_DIR) / "calendar"
        self.cache_ttl = config.CALENDAR_CACHE_TTL_SECONDS if cache_ttl is None else cache_ttl
        self.county = county or config.CALENDAR_COUNTY
        self.now = clock()

    @property
    def historical_path(self) -> Path:
        return self.output_dir / "all-cases-historical.csv"

    @property
    def recent_path(self) -> Path:
        return self.output_dir / "all-cases-recent.csv"

    def _request_spec(self, day: date) -> RequestSpec:
        return RequestSpec(
            url=config.CALENDAR_URL,
            method="POST",
            form_fields={
                "court": "D",
                "countyC": "",
                "countyD": self.county,
                "selectRadio": "date",
                "searchField": day.strftime("%m/%d/%Y"),
                "submitButton": "Submit",
            },
            cache_ttl=self.cache_ttl,
            timeout=config.REQUEST_TIMEOUT_SECONDS,
        )

    def search_date(self, day: str | date) -> List[Dict[str, Any]]:
        """Scrape one calendar day and fold it into the cumulative files."""

        if not config.CALENDAR_URL:
            raise ConfigurationError("SCRAPER_CALENDAR_URL is not configured")

        day = parse_date(day)
        day_label = day.isoformat()
        log_line(f"Getting calendar{'' if self.cache_ttl else ' (cache off)'} for {day_label}")

        try:
            response = self.gateway.fetch(self._request_spec(day))
        except ScraperError as exc:
            raise exc.with_context(identity=f"calendar-{day_label}", cursor=None)
        if response.status_code >= 300:
            raise HttpStatusError(
                response.status_code,
                f"Calendar search returned HTTP {response.status_code}",
                identity=f"calendar-{day_label}",
            )

        body = response.text
        banner = detect_site_error(body)
        if banner:
            _scraper_event("warn", phase="calendar", search_date=day_label, banner=banner)
            log_warning(f"Error searching for {day_label}, use the --no-cache option to force a re-fetch.")
            return []

        capture_date = iso_timestamp(self.now)
        records = [
            {"capture_date": capture_date, "search_date": day_label, **record}
            for record in self.extractor.extract(PageKind.CALENDAR, body)
        ]

        stamp = self.now.strftime("%Y-%m-%dT%H-%M-%S%z")
        by_date_path = self.output_dir / day_label / f"{stamp}--{day_label}.csv"
        save(Dataset.from_records(records), by_date_path)
        log_line(f"Done. Saved this run to: {by_date_path}")

        historical = append(load_dataset(self.historical_path), records)
        save(historical, self.historical_path)
        log_line(f"Done. Saved to all calendar: {self.historical_path}")

        recent = merge_by_key(
            load_dataset(self.recent_path),
            records,
            field_key("search_date"),
            replace_keys=[day_label],
        )
        save(recent, self.recent_path)
        log_line(f"Done. Saved to all calendar (current): {self.recent_path}")

        return records

    def search_range(self, min_date: str | date, max_date: str | date) -> Dict[str, int]:
        """Scrape every day from ``min_date`` to ``max_date`` inclusive, in order."""

        start, end = parse_date(min_date), parse_date(max_date)
        if end < start:
            raise ConfigurationError(f"max date {end} is before min date {start}")

        counts: Dict[str, int] = {}
        current = start
        while current <= end:
            counts[current.isoformat()] = len(self.search_date(current))
            current += timedelta(days=1)
        return counts


__all__ = ["CalendarSearch", "parse_date"]
