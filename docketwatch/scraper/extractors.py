"""HTML extraction rules for the court website's result pages.

Every extractor takes the raw response body and returns plain dict records.
Name-search pages additionally report which page cursors the pagination
controls offer, via :class:`PageResult`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, Tag

from .error_codes import ExtractionError
from .utils import collapse_whitespace

Record = Mapping[str, Any]

_PARTY_TYPE_RE = re.compile(r"\((.+)\)")
_DOB_RE = re.compile(r"dob:\s+(.+)$", re.I | re.M)
_ACTION_DATE_RE = re.compile(r"^(\d+/\d+/\d+)(.*)")
_ACTION_INITIATED_RE = re.compile(r"^this\saction\sinitiated\sby\s(.*)", re.I)
_ACTION_IMAGE_RE = re.compile(r"^image\s+id\s+([0-9a-z]+)", re.I)
_DOCUMENT_ID_RE = re.compile(r"id=([0-9a-z_-]+)&", re.I)

NAME_RESULT_ROWS = ".panel .table-responsive .table-condensed tbody tr"
NO_RESULTS_NOTICE = ".alert-info, .alert-warning"


class PageKind(str, Enum):
    CALENDAR = "calendar"
    CASE = "case"
    NAME_SEARCH = "name-search"


@dataclass(frozen=True)
class PageResult:
    records: tuple[Record, ...] = ()
    next_cursor: Optional[int] = None
    page_label: Optional[str] = None
    cursor_values: tuple[int, ...] = field(default_factory=tuple)


def parse_html(body: str | bytes) -> BeautifulSoup:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return BeautifulSoup(body, "html5lib")


def _cell_text(cells: Sequence[Tag], index: int) -> str:
    if index >= len(cells):
        return ""
    return cells[index].get_text().strip()


def detect_site_error(body: str | bytes | BeautifulSoup) -> Optional[str]:
    """Return the text of the site's error banner, if the page carries one.

    The site answers failed searches with HTTP 200 and an ``.alert-danger``
    box, so this has to be checked on every page.
    """

    soup = body if isinstance(body, BeautifulSoup) else parse_html(body)
    for banner in soup.select(".alert-danger"):
        text = collapse_whitespace(banner.get_text())
        if text:
            return text
    return None


def next_cursor(values: Iterable[int], current: int) -> Optional[int]:
    """Return the page cursor following ``current`` among ``values``.

    Values are de-duplicated (first occurrence wins) and sorted numerically;
    the successor of ``current`` by value is returned. ``None`` when
    ``current`` is not listed or is the last value.
    """

    ordered = sorted(dict.fromkeys(values))
    try:
        position = ordered.index(current)
    except ValueError:
        return None
    if position + 1 >= len(ordered):
        return None
    return ordered[position + 1]


def _cursor_values(soup: BeautifulSoup) -> list[int]:
    values: list[int] = []
    for node in soup.select("input[name=start]"):
        raw = (node.get("value") or "").strip()
        if raw.isdigit():
            values.append(int(raw))
    return values


def _parse_name_cell(text: str) -> dict[str, str]:
    party_match = _PARTY_TYPE_RE.search(text)
    dob_match = _DOB_RE.search(text)
    name = collapse_whitespace(text)
    name = re.sub(r"\(.+$", "", name).strip()
    return {
        "name": name,
        "party_type": collapse_whitespace(party_match.group(1)) if party_match else "",
        "birthdate": collapse_whitespace(dob_match.group(1)) if dob_match else "",
    }


def extract_name_search(body: str | bytes, current_cursor: int = 0) -> PageResult:
    soup = parse_html(body)
    rows = soup.select(NAME_RESULT_ROWS)
    if not rows and not soup.select(".table-condensed") and not soup.select(NO_RESULTS_NOTICE):
        raise ExtractionError("Name search page has neither a results table nor a no-results notice")

    records: list[Record] = []
    for row in rows:
        cells = row.find_all("td")
        if not cells:
            continue
        record = _parse_name_cell(cells[0].get_text())
        record.update(
            {
                "case_number": re.sub(r"\s+", "", _cell_text(cells, 1)),
                "caption": _cell_text(cells, 2),
                "judge": _cell_text(cells, 3),
                "attorney": _cell_text(cells, 4),
            }
        )
        records.append(record)

    values = _cursor_values(soup)
    active = soup.select_one(".pagination .active")
    page_label = collapse_whitespace(active.get_text()) if active else None

    return PageResult(
        records=tuple(records),
        next_cursor=next_cursor(values, current_cursor),
        page_label=page_label or None,
        cursor_values=tuple(values),
    )


def _normalise_date(raw: str) -> str:
    raw = (raw or "").strip()
    try:
        return datetime.strptime(raw, "%m/%d/%Y").strftime("%Y-%m-%d")
    except ValueError:
        return raw


def _panel_after(soup: BeautifulSoup, anchor_id: str) -> Optional[Tag]:
    anchor = soup.find(id=anchor_id)
    if anchor is None:
        return None
    return anchor.find_next_sibling(class_="panel")


def _panel_text(soup: BeautifulSoup, anchor_id: str) -> str:
    panel = _panel_after(soup, anchor_id)
    if panel is None:
        return ""
    body = panel.select_one(".panel-body")
    return body.get_text().strip() if body is not None else ""


def parse_actions(text: str, case_id: str) -> list[dict[str, str]]:
    """Split the register-of-actions text into dated action records."""

    actions: list[dict[str, str]] = []
    current: Optional[dict[str, str]] = None

    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue

        beginning = _ACTION_DATE_RE.match(line)
        if beginning:
            current = {
                "case_id": case_id,
                "date": _normalise_date(beginning.group(1)),
                "type": beginning.group(2).strip(),
            }
            actions.append(current)
            continue

        # Lines before the first dated entry have nowhere to go.
        if current is None:
            continue

        initiated = _ACTION_INITIATED_RE.match(line)
        image = _ACTION_IMAGE_RE.match(line)
        if initiated:
            current["initiated"] = initiated.group(1)
        elif image:
            current["image"] = image.group(1)
        else:
            current["other"] = f"{current['other']} | {line}" if current.get("other") else line

    return [action for action in actions if action.get("date")]


def _document_links(soup: BeautifulSoup) -> list[dict[str, str]]:
    panel = _panel_after(soup, "register_of_actions")
    if panel is None:
        return []

    links: list[dict[str, str]] = []
    for anchor in panel.select(".panel-body a[href]"):
        href = anchor["href"]
        match = _DOCUMENT_ID_RE.search(href)
        if match:
            doc_id = match.group(1)
        else:
            query = parse_qs(urlparse(href).query)
            doc_id = (query.get("id") or [""])[0]
        if doc_id:
            links.append({"id": doc_id, "url": href})
    return links


def extract_case(body: str | bytes, case_id: str) -> dict[str, Any]:
    soup = parse_html(body)
    if soup.find(id="summary") is None:
        raise ExtractionError(f"Case page for {case_id} has no summary section")

    costs: list[dict[str, str]] = []
    costs_panel = _panel_after(soup, "court_costs")
    if costs_panel is not None:
        for row in costs_panel.select(".table tbody tr"):
            cells = row.find_all("td")
            costs.append(
                {
                    "case_id": case_id,
                    "incurred_by": _cell_text(cells, 0),
                    "account": _cell_text(cells, 1),
                    "date": _normalise_date(_cell_text(cells, 2)),
                    "amount": _cell_text(cells, 3),
                }
            )

    actions_raw = _panel_text(soup, "register_of_actions")
    return {
        "case_id": case_id,
        "summary": _panel_text(soup, "summary"),
        "parties": _panel_text(soup, "party_attorney"),
        "offense": _panel_text(soup, "offense_info"),
        "arresting_officers": _panel_text(soup, "arresting_officers"),
        "schedule": _panel_text(soup, "case_schedule"),
        "finances": _panel_text(soup, "financial_activity"),
        "actions_raw": actions_raw,
        "costs": costs,
        "actions": parse_actions(actions_raw, case_id),
        "documents": _document_links(soup),
    }


def extract_calendar(body: str | bytes) -> list[dict[str, str]]:
    soup = parse_html(body)
    records: list[dict[str, str]] = []

    for table in soup.select("table.table-condensed"):
        heading_cell = table.select_one("thead th[colspan='6']")
        heading = heading_cell.get_text().strip() if heading_cell else ""

        for row in table.select("tbody tr"):
            cells = row.find_all("td")
            if not _cell_text(cells, 5):
                continue
            records.append(
                {
                    "courtroom": heading,
                    "name": _cell_text(cells, 0),
                    "date": _cell_text(cells, 1),
                    "time": _cell_text(cells, 2),
                    "hearing": _cell_text(cells, 3),
                    "caption": _cell_text(cells, 4),
                    "case": _cell_text(cells, 5),
                }
            )
    return records


class RecordExtractor:
    """Dispatch a page body to the extraction rules for its kind."""

    def extract(self, kind: PageKind | str, body: str | bytes, **context: Any) -> Any:
        try:
            page_kind = PageKind(kind)
        except ValueError as exc:
            raise ExtractionError(f"Unknown page kind {kind!r}") from exc

        if page_kind is PageKind.NAME_SEARCH:
            return extract_name_search(body, int(context.get("cursor", 0)))
        if page_kind is PageKind.CASE:
            return extract_case(body, str(context["case_id"]))
        return extract_calendar(body)


__all__ = [
    "PageKind",
    "PageResult",
    "Record",
    "RecordExtractor",
    "detect_site_error",
    "next_cursor",
    "extract_name_search",
    "extract_case",
    "extract_calendar",
    "parse_actions",
]
