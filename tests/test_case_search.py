import json
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from docketwatch.scraper import config
from docketwatch.scraper.case_search import CaseSearch, load_case_ids_csv, split_case_id
from docketwatch.scraper.error_codes import ConfigurationError, HttpStatusError, SiteError
from docketwatch.scraper.gateway import GatewayResponse
from docketwatch.scraper.merge_store import load_dataset

PDF_BYTES = b"%PDF-1.4\n%fake\n"


def _case_page(case_id: str, actions: str) -> str:
    return f"""
<html><body>
<a id="summary"></a>
<div class="panel"><div class="panel-body">Case {case_id}</div></div>
<a id="court_costs"></a>
<div class="panel">
  <table class="table"><tbody>
    <tr><td>DEFENDANT</td><td>Filing fee</td><td>01/03/2019</td><td>$25.00</td></tr>
  </tbody></table>
</div>
<a id="register_of_actions"></a>
<div class="panel"><div class="panel-body">
{actions}
</div></div>
</body></html>
"""


TWO_ACTIONS = """01/02/2019 COMPLAINT FILED
This action initiated by CLERK
Image ID 0001ab <a href="/image?id=doc_1&amp;type=pdf">View</a>
01/05/2019 HEARING SET"""

ONE_ACTION = "01/09/2019 CASE CLOSED"


def _configure_temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "OUTPUT_DIR", data_dir / "output")
    monkeypatch.setattr(config, "LOG_DIR", data_dir / "logs")
    monkeypatch.setattr(config, "LOG_FILE", data_dir / "logs" / "latest.log")
    monkeypatch.setattr(config, "CASES_URL", "https://court.example/cases/search.php")
    monkeypatch.setattr(config, "USERNAME", "")
    monkeypatch.setattr(config, "PASSWORD", "")
    return data_dir / "output" / "cases"


class FakeGateway:
    def __init__(self, pages: Dict[str, Any], documents: Dict[str, Any] = None) -> None:
        self.pages = pages
        self.documents = documents or {}
        self.specs: List[Any] = []

    def fetch(self, spec):
        self.specs.append(spec)
        if spec.method == "GET":
            outcome = self.documents[spec.url]
        else:
            fields = spec.form_fields
            outcome = self.pages[fields["case_type"] + fields["case_year"] + fields["case_id"]]
        status, body = outcome if isinstance(outcome, tuple) else (200, outcome)
        if isinstance(body, str):
            body = body.encode("utf-8")
        return GatewayResponse(status, body)


def _search(gateway, **kwargs) -> CaseSearch:
    kwargs.setdefault("cache_ttl", 3600)
    return CaseSearch(gateway=gateway, court_type="D", county_number="21", **kwargs)


def test_split_case_id():
    assert split_case_id("JV19000123") == {"case_type": "JV", "case_year": "19", "case_id": "000123"}
    with pytest.raises(ConfigurationError):
        split_case_id("JV1")


def test_get_case_writes_outputs_and_documents(tmp_path, monkeypatch):
    cases_dir = _configure_temp_paths(tmp_path, monkeypatch)
    gateway = FakeGateway(
        {"JV19000123": _case_page("JV19000123", TWO_ACTIONS)},
        {"https://court.example/image?id=doc_1&type=pdf": PDF_BYTES},
    )

    data = _search(gateway).get_case("JV19000123")

    assert gateway.specs[0].form_fields == {
        "search": "1",
        "from_case_search": "1",
        "court_type": "D",
        "county_num": "21",
        "case_type": "JV",
        "case_year": "19",
        "case_id": "000123",
    }
    assert [a["id"] for a in data["actions"]] == ["JV19000123-0", "JV19000123-1"]

    case_dir = cases_dir / "JV19000123"
    assert (case_dir / "case.JV19000123.html").exists()
    assert (case_dir / "actions" / "JV19000123_doc_1.pdf").read_bytes() == PDF_BYTES
    assert len(load_dataset(case_dir / "case.JV19000123.costs.csv")) == 1
    assert len(load_dataset(case_dir / "case.JV19000123.actions.csv")) == 2
    summary_rows = load_dataset(case_dir / "case.JV19000123.csv")
    assert "actions" not in summary_rows.fieldnames
    assert summary_rows.records[0]["summary"] == "Case JV19000123"
    assert json.loads((case_dir / "case.JV19000123.json").read_text(encoding="utf-8"))["case_id"] == "JV19000123"

    assert [r["case_id"] for r in load_dataset(cases_dir / "cases.csv")] == ["JV19000123"]
    assert len(json.loads((cases_dir / "cases.json").read_text(encoding="utf-8"))) == 1
    assert len(load_dataset(cases_dir / "actions.csv")) == 2


def test_rescrape_replaces_stale_actions(tmp_path, monkeypatch):
    cases_dir = _configure_temp_paths(tmp_path, monkeypatch)
    first = FakeGateway(
        {
            "JV19000123": _case_page("JV19000123", TWO_ACTIONS),
            "CR19000777": _case_page("CR19000777", ONE_ACTION),
        }
    )
    search = _search(first, download_documents=False)
    search.get_case("JV19000123")
    search.get_case("CR19000777")

    second = FakeGateway({"JV19000123": _case_page("JV19000123", ONE_ACTION)})
    _search(second, download_documents=False).get_case("JV19000123")

    actions = load_dataset(cases_dir / "actions.csv")
    assert sorted(r["id"] for r in actions) == ["CR19000777-0", "JV19000123-0"]
    assert [r["type"] for r in actions if r["case_id"] == "JV19000123"] == ["CASE CLOSED"]
    assert sorted(r["case_id"] for r in load_dataset(cases_dir / "cases.csv")) == ["CR19000777", "JV19000123"]


def test_skip_existing_does_not_refetch(tmp_path, monkeypatch):
    _configure_temp_paths(tmp_path, monkeypatch)
    gateway = FakeGateway({"JV19000123": _case_page("JV19000123", ONE_ACTION)})
    _search(gateway).get_case("JV19000123")

    again = FakeGateway({})
    assert _search(again, skip_existing=True).get_case("JV19000123") is None
    assert again.specs == []


def test_bad_document_is_skipped(tmp_path, monkeypatch):
    cases_dir = _configure_temp_paths(tmp_path, monkeypatch)
    gateway = FakeGateway(
        {"JV19000123": _case_page("JV19000123", TWO_ACTIONS)},
        {"https://court.example/image?id=doc_1&type=pdf": b"<html>login</html>"},
    )

    data = _search(gateway).get_case("JV19000123")

    assert data is not None
    assert not (cases_dir / "JV19000123" / "actions" / "JV19000123_doc_1.pdf").exists()
    assert (cases_dir / "cases.csv").exists()


def test_http_error_status_is_fatal(tmp_path, monkeypatch):
    _configure_temp_paths(tmp_path, monkeypatch)
    gateway = FakeGateway({"JV19000123": (404, "missing")})

    with pytest.raises(HttpStatusError) as excinfo:
        _search(gateway).get_case("JV19000123")

    assert "search=JV19000123" in str(excinfo.value)


def test_site_error_banner_raises_for_single_case(tmp_path, monkeypatch):
    _configure_temp_paths(tmp_path, monkeypatch)
    gateway = FakeGateway({"JV19000123": '<div class="alert alert-danger">Case not found</div>'})

    with pytest.raises(SiteError) as excinfo:
        _search(gateway).get_case("JV19000123")

    assert excinfo.value.banner == "Case not found"


def test_get_cases_skips_site_errors(tmp_path, monkeypatch):
    _configure_temp_paths(tmp_path, monkeypatch)
    gateway = FakeGateway(
        {
            "JV19000123": '<div class="alert alert-danger">Case not found</div>',
            "CR19000777": _case_page("CR19000777", ONE_ACTION),
        }
    )

    summary = _search(gateway).get_cases(["JV19000123", "", "CR19000777"])

    assert summary == {"fetched": ["CR19000777"], "skipped": [], "site_errors": ["JV19000123"]}


def test_load_case_ids_csv(tmp_path):
    csv_path = tmp_path / "cases.csv"
    csv_path.write_text("case_id,note\nJV19000123,a\n,b\n CR19000777 ,c\n", encoding="utf-8")

    assert load_case_ids_csv(csv_path) == ["JV19000123", "CR19000777"]

    with pytest.raises(ConfigurationError):
        load_case_ids_csv(csv_path, column="number")
