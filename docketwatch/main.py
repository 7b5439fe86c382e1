"""Command line entry point for the county court scraper."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from docketwatch.scraper import config
from docketwatch.scraper.calendar_search import CalendarSearch
from docketwatch.scraper.case_search import CaseSearch, load_case_ids_csv
from docketwatch.scraper.config_validation import validate_runtime_config
from docketwatch.scraper.error_codes import ConfigurationError, ScraperError
from docketwatch.scraper.export_excel import export_datasets_to_excel
from docketwatch.scraper.healthcheck import run_health_checks
from docketwatch.scraper.logging_utils import _scraper_event
from docketwatch.scraper.name_search import NameSearch, load_search_parameters_csv, run_searches
from docketwatch.scraper.search_identity import SearchParameters
from docketwatch.scraper.utils import ensure_dirs, log_line, setup_run_logger


def _add_shared_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--output", type=Path, help="The directory to output results to.")
    parser.add_argument("--cache", type=int, help="Time to cache results in seconds.")
    parser.add_argument("--no-cache", action="store_true", help="Turn off the cache.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docketwatch",
        description="Scrape county court name searches, cases and calendars.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    names = subparsers.add_parser("names", help="Run a paginated name search.")
    _add_shared_options(names)
    names.add_argument("--name", help='Name to search for, such as "Smith, John".')
    names.add_argument("--county", help="County code, two digits.")
    names.add_argument("--year", help="Case year, two digits.")
    names.add_argument("--case-type", help='Optional case type to limit, for example "JV".')
    names.add_argument("--case-subtype", help="Optional case subtype; requires --case-type.")
    names.add_argument("--entity-type", help="Entity type, defaults to SCRAPER_NAME_ENTITY_TYPE.")
    names.add_argument("--start", type=int, help="Page cursor to start from.")
    names.add_argument("--save", action="store_true", help="Also save each page on its own.")
    names.add_argument("--csv", type=Path, help="CSV of names to search; do not use with --name.")
    names.add_argument("--csv-column", default="name", help="Column to use with the --csv option.")
    names.add_argument("--workers", type=int, help="Searches to run at once with --csv.")

    cases = subparsers.add_parser("cases", help="Fetch case details.")
    _add_shared_options(cases)
    cases.add_argument("--case-id", help="Case ID to search for; do not use with --csv.")
    cases.add_argument("--csv", type=Path, help="CSV of case IDs; do not use with --case-id.")
    cases.add_argument("--csv-column", default="case_id", help="Column to use with the --csv option.")
    cases.add_argument(
        "--new",
        action="store_true",
        help="Skip cases whose raw HTML has already been saved.",
    )
    cases.add_argument("--court-type", help="Court type, defaults to SCRAPER_CASES_COURT_TYPE.")
    cases.add_argument("--county-number", help="County number, defaults to SCRAPER_CASES_COUNTY_NUMBER.")
    cases.add_argument("--no-documents", action="store_true", help="Do not download action documents.")

    calendar = subparsers.add_parser("calendar", help="Scrape the court calendar.")
    _add_shared_options(calendar)
    calendar.add_argument("--date", help="Date to search in YYYY-MM-DD; defaults to today.")
    calendar.add_argument("--min-date", help="First date of a range (inclusive).")
    calendar.add_argument("--max-date", help="Last date of a range (inclusive).")
    calendar.add_argument("--county", help="County code, defaults to SCRAPER_CALENDAR_COUNTY.")

    export = subparsers.add_parser("export", help="Export cumulative datasets to Excel.")
    export.add_argument("--output", type=Path, help="The directory results were written to.")
    export.add_argument("--dest", type=Path, help="Workbook path to write.")

    subparsers.add_parser("health", help="Check configuration, storage and the download journal.")
    return parser


def _cache_ttl(args: argparse.Namespace, default: int) -> int:
    if args.no_cache:
        return 0
    return default if args.cache is None else max(0, args.cache)


def _run_names(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if bool(args.name) == bool(args.csv):
        parser.error("The --name or --csv options must be used (but not both).")

    validate_runtime_config("cli", kind="name-search")
    searcher = NameSearch(output_dir=args.output, cache_ttl=_cache_ttl(args, config.NAME_CACHE_TTL_SECONDS))
    fields = {
        "county": args.county,
        "year": args.year,
        "case_type": args.case_type,
        "case_subtype": args.case_subtype,
        "entity_type": args.entity_type,
        "start": args.start,
        "save": args.save,
    }

    if args.csv:
        params_list = load_search_parameters_csv(args.csv, args.csv_column, defaults=fields)
        summary = run_searches(params_list, max_workers=args.workers, searcher=searcher)
        log_line(f"Name searches complete: {len(summary['completed'])} ok, {len(summary['failed'])} failed")
        return 1 if summary["failed"] else 0

    params = SearchParameters(name=args.name, **fields)
    searcher.run_search(params)
    return 0


def _run_cases(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if bool(args.case_id) == bool(args.csv):
        parser.error("The --case-id or --csv options must be used (but not both).")

    validate_runtime_config("cli", kind="case")
    search = CaseSearch(
        output_dir=args.output,
        cache_ttl=_cache_ttl(args, config.CASE_CACHE_TTL_SECONDS),
        skip_existing=args.new,
        court_type=args.court_type,
        county_number=args.county_number,
        download_documents=not args.no_documents,
    )

    if args.case_id:
        search.get_case(args.case_id)
        return 0

    summary = search.get_cases(load_case_ids_csv(args.csv, args.csv_column))
    log_line(
        "Cases complete: "
        + ", ".join(f"{status}={len(case_ids)}" for status, case_ids in sorted(summary.items()))
    )
    return 0


def _run_calendar(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if bool(args.min_date) != bool(args.max_date):
        parser.error("--min-date and --max-date must be used together.")

    validate_runtime_config("cli", kind="calendar")
    search = CalendarSearch(
        output_dir=args.output,
        cache_ttl=_cache_ttl(args, config.CALENDAR_CACHE_TTL_SECONDS),
        county=args.county,
    )

    if args.min_date:
        search.search_range(args.min_date, args.max_date)
    else:
        search.search_date(args.date or search.now.date())
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    ensure_dirs()
    setup_run_logger()

    if args.command == "health":
        result = run_health_checks()
        for name, info in result.checks.items():
            log_line(f"[HEALTH] {name}: {'OK' if info.get('ok') else 'FAIL'} {info}")
        return 0 if result.ok else 1

    if args.command == "export":
        try:
            export_datasets_to_excel(args.output, args.dest)
        except FileNotFoundError as exc:
            parser.error(str(exc))
        return 0

    handlers = {"names": _run_names, "cases": _run_cases, "calendar": _run_calendar}
    try:
        return handlers[args.command](args, parser)
    except ConfigurationError as exc:
        parser.error(str(exc))
    except ScraperError as exc:
        _scraper_event("error", phase=args.command, error_code=exc.error_code, error=str(exc))
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
