import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from docketwatch.scraper import config, config_validation
from docketwatch.scraper.config_validation import validate_runtime_config
from docketwatch.scraper.error_codes import ConfigurationError


@pytest.fixture(autouse=True)
def _quiet(monkeypatch):
    monkeypatch.setattr(config_validation, "log_line", lambda msg: None)
    monkeypatch.setattr(config_validation, "_scraper_event", lambda *args, **kwargs: None)


def test_missing_url_for_kind_is_fatal(monkeypatch):
    monkeypatch.setattr(config, "NAME_URL", "")

    with pytest.raises(ConfigurationError) as excinfo:
        validate_runtime_config("tests", kind="name-search")

    assert "SCRAPER_NAME_URL" in str(excinfo.value)


def test_url_not_required_without_kind(monkeypatch):
    monkeypatch.setattr(config, "NAME_URL", "")

    validate_runtime_config("tests")


def test_negative_delay_is_fatal(monkeypatch):
    monkeypatch.setattr(config, "REQUEST_DELAY_SECONDS", -1.0)

    with pytest.raises(ConfigurationError):
        validate_runtime_config("tests")


def test_negative_ttl_is_fatal(monkeypatch):
    monkeypatch.setattr(config, "CASE_CACHE_TTL_SECONDS", -5)

    with pytest.raises(ConfigurationError):
        validate_runtime_config("tests")


def test_attempts_and_workers_are_clamped(monkeypatch):
    monkeypatch.setattr(config, "REQUEST_MAX_ATTEMPTS", 0)
    monkeypatch.setattr(config, "MAX_PARALLEL_SEARCHES", -3)

    validate_runtime_config("tests")

    assert config.REQUEST_MAX_ATTEMPTS == 1
    assert config.MAX_PARALLEL_SEARCHES == 1
