import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from docketwatch.scraper import config
from docketwatch.scraper.documents import download_document
from docketwatch.scraper.error_codes import DocumentError, ErrorCode, HttpStatusError
from docketwatch.scraper.gateway import GatewayResponse


class FakeGateway:
    def __init__(self, status_code: int, body: bytes) -> None:
        self.response = GatewayResponse(status_code, body)
        self.specs = []

    def fetch(self, spec):
        self.specs.append(spec)
        return self.response


@pytest.fixture(autouse=True)
def _site_credentials(monkeypatch):
    monkeypatch.setattr(config, "USERNAME", "clerk")
    monkeypatch.setattr(config, "PASSWORD", "secret")


def test_pdf_is_saved(tmp_path):
    gateway = FakeGateway(200, b"%PDF-1.7\nbody")
    dest = tmp_path / "actions" / "JV19000123_doc_1.pdf"

    written = download_document(gateway, "https://court.example/image?id=doc_1&x=1", dest, cache_ttl=60)

    assert written == len(b"%PDF-1.7\nbody")
    assert dest.read_bytes() == b"%PDF-1.7\nbody"
    spec = gateway.specs[0]
    assert spec.method == "GET"
    assert spec.auth == ("clerk", "secret")
    assert spec.cache_ttl == 60


def test_non_pdf_body_is_rejected(tmp_path):
    dest = tmp_path / "doc.pdf"

    with pytest.raises(DocumentError) as excinfo:
        download_document(FakeGateway(200, b"<html>Please log in</html>"), "https://court.example/d", dest, cache_ttl=0)

    assert excinfo.value.error_code == ErrorCode.MALFORMED_PDF
    assert not dest.exists()


def test_error_status_is_raised(tmp_path):
    with pytest.raises(HttpStatusError) as excinfo:
        download_document(FakeGateway(403, b""), "https://court.example/d", tmp_path / "doc.pdf", cache_ttl=0)

    assert excinfo.value.error_code == ErrorCode.HTTP_403
