"""Paginated name search.

``NameSearch.run_search`` walks the result pages of one logical search:

1. derive the per-page and per-entity identities,
2. consult the download journal (an unfinished earlier download forces a
   cache bypass) and flag the entity as in progress,
3. fetch the page through the gateway and keep the raw HTML,
4. stop early, without raising, if the site shows an error banner,
5. extract and stamp the records, accumulate them, clear the flag,
6. optionally save the page on its own,
7. follow the next cursor while it strictly increases.

The full result set is written once to ``names/<identity>-all.csv``. Fatal
errors and site error banners leave the journal flag raised and skip the
``-all`` output, so an earlier complete snapshot survives; per-page files
already written stay on disk.
"""
from __future__ import annotations

import csv
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from . import config
from .download_state import DownloadJournal
from .error_codes import (
    ConfigurationError,
    ExtractionError,
    HttpStatusError,
    ScraperError,
)
from .extractors import PageKind, PageResult, Record, RecordExtractor, detect_site_error
from .gateway import GatewayResponse, RequestGateway, RequestSpec
from .logging_utils import _scraper_event
from .merge_store import Dataset, save
from .search_identity import SearchParameters, complete_identity, compute_identity
from .utils import iso_timestamp, log_line, log_warning, utc_now, write_text_file


class NameSearch:
    def __init__(
        self,
        *,
        gateway: Optional[Any] = None,
        extractor: Optional[Any] = None,
        journal: Optional[DownloadJournal] = None,
        output_dir: Optional[Path] = None,
        cache_ttl: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway or RequestGateway()
        self.extractor = extractor or RecordExtractor()
        self.journal = journal or DownloadJournal()
        self.output_dir = Path(output_dir or config.OUTPUT_DIR) / "names"
        self.cache_ttl = config.NAME_CACHE_TTL_SECONDS if cache_ttl is None else cache_ttl
        self._clock = clock

    def _request_spec(self, params: SearchParameters, ttl: int) -> RequestSpec:
        return RequestSpec(
            url=config.NAME_URL,
            method="POST",
            form_fields=params.form_fields(),
            auth=config.site_auth(),
            cache_ttl=ttl,
            timeout=config.REQUEST_TIMEOUT_SECONDS,
        )

    def _stamp(
        self,
        record: Record,
        params: SearchParameters,
        page_identity: str,
        capture_date: str,
    ) -> Dict[str, Any]:
        stamped: Dict[str, Any] = {
            "capture_date": capture_date,
            "search_id": page_identity,
            "search_name": params.name or "",
            "search_county": params.county or "",
            "search_year": params.year or "",
            "search_case_type": params.case_type or "",
            "search_case_subtype": params.case_subtype or "",
            "search_entity_type": params.entity_type or "",
            "search_start": params.cursor,
        }
        stamped.update(record)
        return stamped

    def _fetch(self, spec: RequestSpec, identity: str, cursor: int) -> GatewayResponse:
        try:
            response = self.gateway.fetch(spec)
        except ScraperError as exc:
            raise exc.with_context(identity=identity, cursor=cursor)

        if response.status_code >= 300:
            raise HttpStatusError(
                response.status_code,
                f"Name search returned HTTP {response.status_code}",
                identity=identity,
                cursor=cursor,
            )
        return response

    def _extract(self, body: str, identity: str, cursor: int) -> PageResult:
        try:
            page = self.extractor.extract(PageKind.NAME_SEARCH, body, cursor=cursor)
        except ScraperError as exc:
            raise exc.with_context(identity=identity, cursor=cursor)

        if not isinstance(page, PageResult):
            raise ExtractionError(
                f"Extractor returned {type(page).__name__} instead of a page result",
                identity=identity,
                cursor=cursor,
            )
        return page

    def run_search(self, params: SearchParameters) -> Dataset:
        """Fetch every page of ``params`` and return the accumulated records."""

        if not config.NAME_URL:
            raise ConfigurationError("SCRAPER_NAME_URL is not configured")

        entity_identity = compute_identity(params, include_cursor=False)
        capture_date = iso_timestamp(self._clock())
        cursor = params.cursor
        accumulated: List[Dict[str, Any]] = []
        truncated = False

        log_line(f"Getting name search{'' if self.cache_ttl else ' (cache off)'}: {entity_identity}")

        while True:
            page_params = params.with_cursor(cursor)
            page_identity = compute_identity(page_params, include_cursor=True)

            ttl = self.journal.effective_cache_ttl(entity_identity, self.cache_ttl)
            if ttl != self.cache_ttl:
                log_warning(f"Name search {entity_identity} did not finish downloading, re-downloading.")
            self.journal.mark_in_progress(entity_identity)

            response = self._fetch(self._request_spec(page_params, ttl), entity_identity, cursor)
            body = response.text
            write_text_file(self.output_dir / f"{page_identity}.html", body)

            banner = detect_site_error(body)
            if banner:
                _scraper_event(
                    "warn",
                    phase="page",
                    identity=entity_identity,
                    cursor=cursor,
                    banner=banner,
                    accumulated=len(accumulated),
                )
                log_warning(
                    f"Error searching for {entity_identity} at start={cursor}: {banner}; "
                    "use the --no-cache option to force a re-fetch."
                )
                truncated = True
                break

            page = self._extract(body, entity_identity, cursor)
            stamped = tuple(
                self._stamp(record, page_params, page_identity, capture_date) for record in page.records
            )
            accumulated.extend(stamped)
            self.journal.mark_complete(entity_identity)

            if params.save:
                page_path = save(Dataset.from_records(stamped), self.output_dir / f"{page_identity}.csv")
                log_line(f"Saved page {page.page_label or cursor} to: {page_path}")

            _scraper_event(
                "page",
                identity=entity_identity,
                cursor=cursor,
                records=len(stamped),
                next_cursor=page.next_cursor,
                page_label=page.page_label,
                from_cache=response.from_cache,
            )

            following = page.next_cursor
            if following is None:
                break
            if following <= cursor:
                _scraper_event(
                    "warn",
                    phase="page",
                    identity=entity_identity,
                    cursor=cursor,
                    next_cursor=following,
                    reason="cursor_not_advancing",
                )
                break
            cursor = following

        dataset = Dataset.from_records(accumulated)
        if truncated:
            log_warning(
                f"Kept {len(dataset)} records for {entity_identity}; not replacing {complete_identity(params)}.csv."
            )
            return dataset

        all_path = save(dataset, self.output_dir / f"{complete_identity(params)}.csv")
        log_line(f"Done. Saved {len(dataset)} records for {entity_identity} to: {all_path}")
        return dataset


def run_search(params: SearchParameters, **kwargs: Any) -> Dataset:
    """Run one name search with default collaborators built from ``config``."""

    return NameSearch(**kwargs).run_search(params)


def run_searches(
    params_list: Iterable[SearchParameters],
    *,
    max_workers: Optional[int] = None,
    searcher: Optional[NameSearch] = None,
) -> Dict[str, Dict[str, Any]]:
    """Run independent searches, sequentially unless ``max_workers`` > 1.

    Parallel searches share one gateway, so every request still goes through
    the process-wide throttle. A fatal error in one search is logged and
    recorded; the others continue. Repeated identities run only once.
    """

    searcher = searcher or NameSearch()
    workers = max(1, max_workers if max_workers is not None else config.MAX_PARALLEL_SEARCHES)
    summary: Dict[str, Dict[str, Any]] = {"completed": {}, "failed": {}}

    # Searches sharing an identity share output files and the journal flag.
    unique: Dict[str, SearchParameters] = {}
    for params in params_list:
        identity = compute_identity(params, include_cursor=False)
        if identity in unique:
            _scraper_event("warn", phase="search", identity=identity, reason="duplicate_search")
            continue
        unique[identity] = params
    items = list(unique.values())

    def _one(params: SearchParameters) -> None:
        identity = compute_identity(params, include_cursor=False)
        try:
            dataset = searcher.run_search(params)
        except ScraperError as exc:
            _scraper_event("error", phase="search", identity=identity, error_code=exc.error_code, error=str(exc))
            summary["failed"][identity] = str(exc)
            return
        summary["completed"][identity] = len(dataset)

    if workers == 1:
        for params in items:
            _one(params)
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            list(executor.map(_one, items))

    return summary


def load_search_parameters_csv(
    csv_path: Path,
    name_column: str = "name",
    defaults: Optional[Mapping[str, Any]] = None,
) -> List[SearchParameters]:
    """Build one ``SearchParameters`` per row of ``csv_path`` with a name."""

    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise ConfigurationError(f"Unable to find CSV at {csv_path}")

    with csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
        rows = list(csv.DictReader(handle))

    if not rows:
        raise ConfigurationError(f"Unable to find any rows in the CSV at {csv_path}")
    if name_column not in rows[0]:
        raise ConfigurationError(f'Unable to find the "{name_column}" column in the CSV at {csv_path}')

    params_list: List[SearchParameters] = []
    for row in rows:
        name = (row.get(name_column) or "").strip()
        if not name:
            continue
        values: Dict[str, Any] = dict(defaults or {})
        values.update({key: value for key, value in row.items() if key and value})
        values["name"] = name
        params_list.append(SearchParameters.from_mapping(values))
    return params_list


__all__ = [
    "NameSearch",
    "run_search",
    "run_searches",
    "load_search_parameters_csv",
]
