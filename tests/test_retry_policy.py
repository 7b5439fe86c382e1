import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from docketwatch.scraper import retry_policy
from docketwatch.scraper.error_codes import ErrorCode
from docketwatch.scraper.retry_policy import compute_backoff_seconds, decide_retry


@pytest.fixture
def events(monkeypatch):
    recorded = []
    monkeypatch.setattr(retry_policy, "_scraper_event", lambda label, **fields: recorded.append((label, fields)))
    return recorded


def test_network_errors_retry_until_capped(events):
    assert decide_retry(1, 2, error_code=ErrorCode.NETWORK) is True
    assert decide_retry(2, 2, error_code=ErrorCode.NETWORK) is False
    assert [fields["kind"] for _, fields in events] == ["retryable", "capped"]


@pytest.mark.parametrize(
    "code",
    [ErrorCode.TIMEOUT, ErrorCode.HTTP_404, ErrorCode.SITE_ERROR, ErrorCode.CONFIG],
)
def test_non_retryable_codes(events, code):
    assert decide_retry(1, 5, error_code=code) is False
    assert events[-1][1]["kind"] == "non_retryable"


def test_missing_or_unknown_code_does_not_retry(events):
    assert decide_retry(1, 5) is False
    assert decide_retry(1, 5, error_code="something_else") is False
    assert [fields["kind"] for _, fields in events] == ["missing_error_code", "unknown"]


def test_backoff_is_exponential_and_capped():
    assert [compute_backoff_seconds(i) for i in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]
    assert compute_backoff_seconds(10) == 30.0
