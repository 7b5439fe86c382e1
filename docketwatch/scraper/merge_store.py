"""Keyed, file-backed record datasets.

A dataset on disk is always a complete CSV snapshot: every save rewrites the
whole file through a temp file and an atomic rename, so a crash mid-write
leaves the previous snapshot intact and readable.

Three usage patterns:

* append-only historical logs (:func:`append`),
* "current" snapshots replaced per search date (:func:`merge_by_key`),
* per-case cumulative tables keyed by case or action id (:func:`merge_by_key`).
"""
from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from .error_codes import CorruptStateError
from .logging_utils import _scraper_event
from .utils import replace_file

Record = Mapping[str, Any]
KeyFn = Callable[[Record], Any]


def _union_fieldnames(*groups: Iterable[Record], seed: Sequence[str] = ()) -> tuple[str, ...]:
    names: dict[str, None] = dict.fromkeys(seed)
    for group in groups:
        for record in group:
            for key in record.keys():
                names.setdefault(str(key), None)
    return tuple(names)


@dataclass(frozen=True)
class Dataset:
    records: tuple[Record, ...] = ()
    fieldnames: tuple[str, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    @classmethod
    def from_records(cls, records: Iterable[Record]) -> "Dataset":
        rows = tuple(dict(record) for record in records)
        return cls(records=rows, fieldnames=_union_fieldnames(rows))


def field_key(name: str) -> KeyFn:
    """Return a key function reading column ``name``."""

    def _key(record: Record) -> Any:
        return record.get(name) or ""

    return _key


def load_dataset(path: Path, key_fn: Optional[KeyFn] = None) -> Dataset:
    """Read the dataset stored at ``path``; missing files give an empty dataset.

    With ``key_fn`` rows whose key is empty are treated as corrupt and dropped.
    """

    path = Path(path)
    if not path.exists():
        return Dataset()

    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise CorruptStateError(path, f"unreadable dataset: {exc}") from exc

    if not text.strip():
        return Dataset()

    records: list[Record] = []
    dropped = 0
    try:
        reader = csv.DictReader(io.StringIO(text, newline=""))
        fieldnames = tuple(reader.fieldnames or ())
        for line_number, row in enumerate(reader, start=2):
            if None in row:
                raise CorruptStateError(path, f"row {line_number} has more cells than the header")
            record = {key: (value if value is not None else "") for key, value in row.items()}
            if key_fn is not None and not key_fn(record):
                dropped += 1
                continue
            records.append(record)
    except csv.Error as exc:
        raise CorruptStateError(path, f"malformed CSV: {exc}") from exc

    if dropped:
        _scraper_event("warn", phase="merge", path=str(path), dropped_rows=dropped, reason="missing_key")

    return Dataset(records=tuple(records), fieldnames=fieldnames)


def merge_by_key(
    dataset: Dataset,
    new_records: Iterable[Record],
    key_fn: KeyFn,
    replace_keys: Iterable[Any] = (),
) -> Dataset:
    """Replace existing records sharing a key with ``new_records``.

    Untouched records keep their order and the new batch follows. Existing
    records whose key is in ``replace_keys`` are dropped as well, so a caller
    can clear a key even when the new batch for it is empty. Records are
    replaced wholesale, never field-merged.
    """

    incoming = [dict(record) for record in new_records]
    evicted = {key_fn(record) for record in incoming}
    evicted.update(replace_keys)

    kept = [record for record in dataset.records if key_fn(record) not in evicted]
    merged = tuple(kept + incoming)
    return Dataset(records=merged, fieldnames=_union_fieldnames(incoming, seed=dataset.fieldnames))


def append(dataset: Dataset, new_records: Iterable[Record]) -> Dataset:
    incoming = [dict(record) for record in new_records]
    return Dataset(
        records=dataset.records + tuple(incoming),
        fieldnames=_union_fieldnames(incoming, seed=dataset.fieldnames),
    )


def _to_csv(dataset: Dataset) -> str:
    fieldnames = _union_fieldnames(dataset.records, seed=dataset.fieldnames)
    buffer = io.StringIO(newline="")
    writer = csv.DictWriter(buffer, fieldnames=list(fieldnames), extrasaction="ignore", lineterminator="\n")
    if fieldnames:
        writer.writeheader()
    for record in dataset.records:
        writer.writerow({key: "" if value is None else value for key, value in record.items()})
    return buffer.getvalue()


def save(dataset: Dataset, path: Path) -> Path:
    """Write the whole dataset to ``path``, replacing any previous snapshot."""

    path = Path(path)
    replace_file(path, _to_csv(dataset))
    _scraper_event("merge", phase="save", path=str(path), rows=len(dataset))
    return path


def save_json(records: Iterable[Record], path: Path) -> Path:
    """Write a JSON mirror of ``records`` to ``path``."""

    path = Path(path)
    replace_file(path, json.dumps([dict(record) for record in records], ensure_ascii=False, indent=2))
    return path


__all__ = [
    "Dataset",
    "Record",
    "field_key",
    "load_dataset",
    "merge_by_key",
    "append",
    "save",
    "save_json",
]
