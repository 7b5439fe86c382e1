"""Case detail lookups and the cumulative case/action tables."""
from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

from . import config
from .documents import download_document
from .error_codes import (
    ConfigurationError,
    HttpStatusError,
    ScraperError,
    SiteError,
)
from .extractors import PageKind, RecordExtractor, detect_site_error
from .gateway import RequestGateway, RequestSpec
from .logging_utils import _scraper_event
from .merge_store import Dataset, field_key, load_dataset, merge_by_key, save, save_json
from .utils import log_line, log_warning, replace_file, write_text_file

SUMMARY_EXCLUDED = ("costs", "actions", "documents")


def split_case_id(case_id: str) -> Dict[str, str]:
    """Split ``JV19000123`` into the type, year and number form fields."""

    case_id = (case_id or "").strip()
    if len(case_id) < 5:
        raise ConfigurationError(f"Case ID {case_id!r} is too short; expected <type><yy><number>")
    return {
        "case_type": case_id[:2],
        "case_year": case_id[2:4],
        "case_id": case_id[4:],
    }


class CaseSearch:
    def __init__(
        self,
        *,
        gateway: Optional[Any] = None,
        extractor: Optional[Any] = None,
        output_dir: Optional[Path] = None,
        cache_ttl: Optional[int] = None,
        skip_existing: bool = False,
        court_type: Optional[str] = None,
        county_number: Optional[str] = None,
        download_documents: bool = True,
    ) -> None:
        self.gateway = gateway or RequestGateway()
        self.extractor = extractor or RecordExtractor()
        self.output_dir = Path(output_dir or config.OUTPUT_DIR) / "cases"
        self.cache_ttl = config.CASE_CACHE_TTL_SECONDS if cache_ttl is None else cache_ttl
        self.skip_existing = skip_existing
        self.court_type = court_type or config.CASES_COURT_TYPE
        self.county_number = county_number or config.CASES_COUNTY_NUMBER
        self.download_documents = download_documents

    @property
    def summary_path(self) -> Path:
        return self.output_dir / "cases.csv"

    @property
    def actions_path(self) -> Path:
        return self.output_dir / "actions.csv"

    def case_dir(self, case_id: str) -> Path:
        return self.output_dir / case_id

    def raw_html_path(self, case_id: str) -> Path:
        return self.case_dir(case_id) / f"case.{case_id}.html"

    def _request_spec(self, case_id: str) -> RequestSpec:
        form = {
            "search": "1",
            "from_case_search": "1",
            "court_type": self.court_type,
            "county_num": self.county_number,
        }
        form.update(split_case_id(case_id))
        return RequestSpec(
            url=config.CASES_URL,
            method="POST",
            form_fields={key: value for key, value in form.items() if value},
            auth=config.site_auth(),
            cache_ttl=self.cache_ttl,
            timeout=config.REQUEST_TIMEOUT_SECONDS,
        )

    def get_case(self, case_id: str) -> Optional[Dict[str, Any]]:
        """Fetch, parse and store one case; ``None`` when skipped as existing."""

        if not config.CASES_URL:
            raise ConfigurationError("SCRAPER_CASES_URL is not configured")

        case_id = case_id.strip()
        spec = self._request_spec(case_id)
        raw_path = self.raw_html_path(case_id)

        if self.skip_existing and raw_path.exists():
            log_line(f"Skipping {case_id}: raw HTML already exists at {raw_path}")
            return None

        log_line(f"Getting case{'' if self.cache_ttl else ' (cache off)'}: {case_id}")
        try:
            response = self.gateway.fetch(spec)
        except ScraperError as exc:
            raise exc.with_context(identity=case_id, cursor=None)
        if response.status_code >= 300:
            raise HttpStatusError(
                response.status_code,
                f"Case search returned HTTP {response.status_code}",
                identity=case_id,
            )

        body = response.text
        write_text_file(raw_path, body)

        banner = detect_site_error(body)
        if banner:
            log_warning(f"Error searching for {case_id}, use the --no-cache option to force a re-fetch.")
            raise SiteError(banner, identity=case_id)

        try:
            data = self.extractor.extract(PageKind.CASE, body, case_id=case_id)
        except ScraperError as exc:
            raise exc.with_context(identity=case_id, cursor=None)

        actions = [dict(action, id=f"{case_id}-{index}") for index, action in enumerate(data.get("actions", []))]
        data["actions"] = actions

        if self.download_documents:
            self._download_documents(case_id, data.get("documents", []))

        self._write_case_outputs(case_id, data)
        self._merge_cumulative(case_id, data)
        return data

    def _download_documents(self, case_id: str, documents: Iterable[Dict[str, str]]) -> None:
        documents = list(documents)
        if not documents:
            return

        log_line(f"Downloading images for {case_id}")
        actions_dir = self.case_dir(case_id) / "actions"
        for document in documents:
            doc_id = document["id"]
            url = urljoin(config.CASES_URL, document["url"])
            try:
                download_document(
                    self.gateway,
                    url,
                    actions_dir / f"{case_id}_{doc_id}.pdf",
                    cache_ttl=self.cache_ttl,
                    token=f"{case_id}:{doc_id}",
                )
            except Exception as exc:  # noqa: BLE001
                _scraper_event("warn", phase="document", case_id=case_id, document_id=doc_id, error=str(exc))
                log_warning(f"There was an error downloading image {doc_id} for case {case_id}: {exc}")

    def _write_case_outputs(self, case_id: str, data: Dict[str, Any]) -> None:
        case_dir = self.case_dir(case_id)
        summary = {key: value for key, value in data.items() if key not in SUMMARY_EXCLUDED}

        save(Dataset.from_records(data.get("costs", [])), case_dir / f"case.{case_id}.costs.csv")
        save(Dataset.from_records(data.get("actions", [])), case_dir / f"case.{case_id}.actions.csv")
        save(Dataset.from_records([summary]), case_dir / f"case.{case_id}.csv")
        replace_file(case_dir / f"case.{case_id}.json", json.dumps(data, ensure_ascii=False, indent=2))

    def _merge_cumulative(self, case_id: str, data: Dict[str, Any]) -> None:
        summary = {key: value for key, value in data.items() if key not in SUMMARY_EXCLUDED}

        cases = load_dataset(self.summary_path, key_fn=field_key("case_id"))
        cases = merge_by_key(cases, [summary], field_key("case_id"))
        save(cases, self.summary_path)
        save_json(cases.records, self.summary_path.with_suffix(".json"))

        actions = load_dataset(self.actions_path, key_fn=field_key("id"))
        # Drop actions from an earlier scrape of this case before adding the new list.
        stale = [record["id"] for record in actions.records if record.get("case_id") == case_id]
        actions = merge_by_key(actions, data.get("actions", []), field_key("id"), replace_keys=stale)
        save(actions, self.actions_path)

    def get_cases(self, case_ids: Iterable[str]) -> Dict[str, List[str]]:
        """Look up several cases in order; site errors skip just that case."""

        summary: Dict[str, List[str]] = {"fetched": [], "skipped": [], "site_errors": []}
        for case_id in case_ids:
            case_id = (case_id or "").strip()
            if not case_id:
                continue
            try:
                data = self.get_case(case_id)
            except SiteError as exc:
                _scraper_event("warn", phase="case", case_id=case_id, banner=exc.banner)
                summary["site_errors"].append(case_id)
                continue
            summary["fetched" if data is not None else "skipped"].append(case_id)
        return summary


def load_case_ids_csv(csv_path: Path, column: str = "case_id") -> List[str]:
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise ConfigurationError(f'Unable to find CSV at "{csv_path}"')

    with csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
        rows = list(csv.DictReader(handle))

    if not rows:
        raise ConfigurationError(f'Unable to find any rows in the CSV at "{csv_path}"')
    if not rows[0].get(column):
        raise ConfigurationError(f'Unable to find the "{column}" in the CSV at "{csv_path}"')

    return [row[column].strip() for row in rows if (row.get(column) or "").strip()]


__all__ = ["CaseSearch", "split_case_id", "load_case_ids_csv"]
