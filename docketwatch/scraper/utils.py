from __future__ import annotations

import json
import logging
import os
import re
import sys
import tempfile
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import config

LOGGER = logging.getLogger("docketwatch")
_LOGGER_INITIALISED = False
_CURRENT_LOG_FILE: Path = config.LOG_FILE


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``."""

    global _LOGGER_INITIALISED, _CURRENT_LOG_FILE

    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _CURRENT_LOG_FILE = log_path
    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return
    _configure_logger(config.LOG_FILE)


def setup_run_logger() -> Path:
    """Rotate to a fresh timestamped log file for the current run."""

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_path = config.LOG_DIR / f"scrape_{timestamp}.log"
    _configure_logger(log_path)
    LOGGER.info("Logging to %s", log_path)
    return log_path


def get_current_log_path() -> Path:
    """Return the path to the log file currently receiving log lines."""

    _ensure_logger()
    return _CURRENT_LOG_FILE


def ensure_dirs(*extra: Path) -> None:
    """Ensure the data, output, cache and log directories (plus ``extra``) exist."""

    for directory in (config.DATA_DIR, config.OUTPUT_DIR, config.CACHE_DIR, config.LOG_DIR, *extra):
        Path(directory).mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.info(message)


def log_warning(message: str) -> None:
    """Report a non-fatal problem through the warning channel."""

    _ensure_logger()
    LOGGER.warning(message)


def slugify(text: str | None) -> str:
    """Return a lowercase, dash separated, filesystem-safe form of ``text``.

    Accents are folded to ASCII, apostrophes are dropped and letter/digit runs
    become separate words, so ``"O'Brien, Mary 2019"`` gives
    ``"obrien-mary-2019"``.
    """

    if not text:
        return ""
    folded = unicodedata.normalize("NFKD", str(text)).encode("ascii", "ignore").decode("ascii")
    folded = re.sub(r"['’]", "", folded).lower()
    return "-".join(re.findall(r"[a-z]+|[0-9]+", folded))


def collapse_whitespace(value: str | None) -> str:
    return re.sub(r"\s+", " ", value or "").strip()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """Format ``moment`` as an ISO-8601 UTC string with milliseconds."""

    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def write_text_file(path: Path, content: str) -> Path:
    """Write ``content`` to ``path``, creating parent directories."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def replace_file(path: Path, content: str) -> None:
    """Persist ``content`` to ``path`` atomically via a sibling temp file."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        newline="",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as handle:
        handle.write(content)
        handle.flush()
        os.fsync(handle.fileno())
        tmp_path = Path(handle.name)
    try:
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def save_json_file(path: Path, payload: Any) -> None:
    replace_file(path, json.dumps(payload, ensure_ascii=False, indent=2))


__all__ = [
    "LOGGER",
    "ensure_dirs",
    "setup_run_logger",
    "get_current_log_path",
    "log_line",
    "log_warning",
    "slugify",
    "collapse_whitespace",
    "utc_now",
    "iso_timestamp",
    "write_text_file",
    "replace_file",
    "save_json_file",
]
