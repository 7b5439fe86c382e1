import sys
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from docketwatch.scraper import config
from docketwatch.scraper.calendar_search import CalendarSearch, parse_date
from docketwatch.scraper.error_codes import ConfigurationError
from docketwatch.scraper.gateway import GatewayResponse
from docketwatch.scraper.merge_store import load_dataset

NOW = datetime(2019, 1, 2, 15, 4, 5, tzinfo=timezone.utc)


def _calendar_page(*cases: str) -> str:
    rows = "".join(
        f"<tr><td>PARTY {case}</td><td>01/02/2019</td><td>9:00 AM</td>"
        f"<td>Review</td><td>State vs. {case}</td><td>{case}</td></tr>"
        for case in cases
    )
    return (
        '<table class="table table-condensed">'
        '<thead><tr><th colspan="6">Courtroom 1</th></tr></thead>'
        f"<tbody>{rows}</tbody></table>"
    )


def _configure_temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "OUTPUT_DIR", data_dir / "output")
    monkeypatch.setattr(config, "LOG_DIR", data_dir / "logs")
    monkeypatch.setattr(config, "LOG_FILE", data_dir / "logs" / "latest.log")
    monkeypatch.setattr(config, "CALENDAR_URL", "https://court.example/calendar.php")
    return data_dir / "output" / "calendar"


class FakeGateway:
    def __init__(self, pages: Dict[str, str]) -> None:
        self.pages = pages
        self.specs: List[Any] = []

    def fetch(self, spec):
        self.specs.append(spec)
        return GatewayResponse(200, self.pages[spec.form_fields["searchField"]].encode("utf-8"))


def _search(gateway) -> CalendarSearch:
    return CalendarSearch(gateway=gateway, cache_ttl=3600, county="21", clock=lambda: NOW)


def test_parse_date_formats():
    assert parse_date("2019-01-02") == date(2019, 1, 2)
    assert parse_date("01/02/2019") == date(2019, 1, 2)
    assert parse_date(NOW) == date(2019, 1, 2)
    with pytest.raises(ConfigurationError):
        parse_date("2 Jan 2019")


def test_search_date_writes_run_historical_and_recent(tmp_path, monkeypatch):
    calendar_dir = _configure_temp_paths(tmp_path, monkeypatch)
    gateway = FakeGateway({"01/02/2019": _calendar_page("JV19000123", "CR19000777")})

    records = _search(gateway).search_date("2019-01-02")

    assert gateway.specs[0].form_fields == {
        "court": "D",
        "countyC": "",
        "countyD": "21",
        "selectRadio": "date",
        "searchField": "01/02/2019",
        "submitButton": "Submit",
    }
    assert [r["case"] for r in records] == ["JV19000123", "CR19000777"]
    assert records[0]["search_date"] == "2019-01-02"
    assert records[0]["capture_date"] == "2019-01-02T15:04:05.000Z"
    run_file = calendar_dir / "2019-01-02" / "2019-01-02T15-04-05+0000--2019-01-02.csv"
    assert len(load_dataset(run_file)) == 2
    assert len(load_dataset(calendar_dir / "all-cases-historical.csv")) == 2
    assert len(load_dataset(calendar_dir / "all-cases-recent.csv")) == 2


def test_repeat_search_appends_history_and_replaces_recent(tmp_path, monkeypatch):
    calendar_dir = _configure_temp_paths(tmp_path, monkeypatch)
    _search(FakeGateway({"01/02/2019": _calendar_page("A1", "A2")})).search_date("2019-01-02")
    _search(FakeGateway({"01/03/2019": _calendar_page("B1")})).search_date("2019-01-03")
    _search(FakeGateway({"01/02/2019": _calendar_page("A3")})).search_date("2019-01-02")

    historical = load_dataset(calendar_dir / "all-cases-historical.csv")
    recent = load_dataset(calendar_dir / "all-cases-recent.csv")

    assert [r["case"] for r in historical] == ["A1", "A2", "B1", "A3"]
    assert [(r["search_date"], r["case"]) for r in recent] == [
        ("2019-01-03", "B1"),
        ("2019-01-02", "A3"),
    ]


def test_empty_day_clears_recent_rows(tmp_path, monkeypatch):
    calendar_dir = _configure_temp_paths(tmp_path, monkeypatch)
    _search(FakeGateway({"01/02/2019": _calendar_page("A1")})).search_date("2019-01-02")
    _search(FakeGateway({"01/02/2019": "<p>No hearings scheduled.</p>"})).search_date("2019-01-02")

    assert len(load_dataset(calendar_dir / "all-cases-recent.csv")) == 0
    assert len(load_dataset(calendar_dir / "all-cases-historical.csv")) == 1


def test_site_banner_leaves_cumulative_files_untouched(tmp_path, monkeypatch):
    calendar_dir = _configure_temp_paths(tmp_path, monkeypatch)
    gateway = FakeGateway({"01/02/2019": '<div class="alert alert-danger">Search failed</div>'})

    assert _search(gateway).search_date("2019-01-02") == []
    assert not (calendar_dir / "all-cases-historical.csv").exists()
    assert not (calendar_dir / "all-cases-recent.csv").exists()


def test_search_range_is_inclusive(tmp_path, monkeypatch):
    _configure_temp_paths(tmp_path, monkeypatch)
    gateway = FakeGateway(
        {
            "01/02/2019": _calendar_page("A1"),
            "01/03/2019": _calendar_page(),
            "01/04/2019": _calendar_page("C1", "C2"),
        }
    )

    counts = _search(gateway).search_range("2019-01-02", "01/04/2019")

    assert counts == {"2019-01-02": 1, "2019-01-03": 0, "2019-01-04": 2}
    assert [spec.form_fields["searchField"] for spec in gateway.specs] == [
        "01/02/2019",
        "01/03/2019",
        "01/04/2019",
    ]


def test_reversed_range_is_rejected(tmp_path, monkeypatch):
    _configure_temp_paths(tmp_path, monkeypatch)

    with pytest.raises(ConfigurationError):
        _search(FakeGateway({})).search_range("2019-01-04", "2019-01-02")
