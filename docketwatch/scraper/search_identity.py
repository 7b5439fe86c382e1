"""Name-search parameters and the identities derived from them.

The per-entity identity (no cursor) keys the download journal and names the
``-all`` output; the per-page identity (with cursor) names raw HTML snapshots
and per-page CSVs.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from . import config
from .error_codes import ConfigurationError
from .utils import slugify

INITIAL_CURSOR = 0
COMPLETE_SUFFIX = "all"

# Accepted spellings for each field when building from loose input rows.
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "party_name", "partyName"),
    "county": ("county", "county_num", "countyNum", "county_code", "countyCode"),
    "year": ("year", "case_year", "caseYear"),
    "case_type": ("case_type", "caseType"),
    "case_subtype": ("case_subtype", "caseSubType", "caseSubtype", "case_sub_type"),
    "entity_type": ("entity_type", "entityType", "indiv_entity_type"),
    "start": ("start", "cursor"),
    "save": ("save",),
}

# Fixed order of identity-relevant fields.
IDENTITY_FIELDS = ("name", "county", "year", "case_type", "case_subtype", "entity_type")

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_start(value: Any) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"start must be an integer, got {value!r}") from exc


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class SearchParameters:
    name: Optional[str] = None
    county: Optional[str] = None
    year: Optional[str] = None
    case_type: Optional[str] = None
    case_subtype: Optional[str] = None
    entity_type: Optional[str] = None
    start: Optional[int] = None
    save: bool = False

    def __post_init__(self) -> None:
        for field_name in IDENTITY_FIELDS:
            object.__setattr__(self, field_name, _clean(getattr(self, field_name)))
        object.__setattr__(self, "start", _coerce_start(self.start))

        if self.case_subtype and not self.case_type:
            raise ConfigurationError("case_subtype requires case_type to be set")
        if self.year is not None and not re.fullmatch(r"\d{2}", self.year):
            raise ConfigurationError(f"year must be two digits, got {self.year!r}")
        if self.start is not None and self.start < 0:
            raise ConfigurationError(f"start must not be negative, got {self.start}")
        if not any(getattr(self, field_name) for field_name in IDENTITY_FIELDS):
            raise ConfigurationError("at least one search field is required")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "SearchParameters":
        """Build parameters from a loose mapping (CLI args, CSV rows, JSON)."""

        kwargs: dict[str, Any] = {}
        for field_name, aliases in _FIELD_ALIASES.items():
            for alias in aliases:
                if alias in values and values[alias] not in (None, ""):
                    kwargs[field_name] = values[alias]
                    break
        if "save" in kwargs:
            kwargs["save"] = _coerce_bool(kwargs["save"])
        return cls(**kwargs)

    @property
    def cursor(self) -> int:
        return INITIAL_CURSOR if self.start is None else self.start

    def with_cursor(self, cursor: int) -> "SearchParameters":
        return replace(self, start=cursor)

    def form_fields(self) -> dict[str, str]:
        """Render the webform fields for this search page."""

        fields = {
            "submit_hidden": config.NAME_HIDDEN_TOKEN,
            "party_name": self.name or "",
            "county_num": self.county or "",
            "case_year": self.year or "",
            "case_type": self.case_type or "",
            "case_sub_type": self.case_subtype or "",
            "indiv_entity_type": self.entity_type or config.NAME_ENTITY_TYPE,
            "start": str(self.cursor),
        }
        return {key: value for key, value in fields.items() if value != ""}


def compute_identity(params: SearchParameters, include_cursor: bool = False) -> str:
    """Return the deterministic slug identifying ``params``.

    Empty fields are omitted. With ``include_cursor`` the page cursor is
    appended, zero included.
    """

    parts = [getattr(params, field_name) for field_name in IDENTITY_FIELDS]
    words = [part for part in parts if part]
    if include_cursor:
        words.extend(["start", str(params.cursor)])
    return slugify(" ".join(words))


def complete_identity(params: SearchParameters) -> str:
    """Identity of the output holding every page of a search."""

    return f"{compute_identity(params, include_cursor=False)}-{COMPLETE_SUFFIX}"


__all__ = [
    "INITIAL_CURSOR",
    "IDENTITY_FIELDS",
    "SearchParameters",
    "compute_identity",
    "complete_identity",
]
