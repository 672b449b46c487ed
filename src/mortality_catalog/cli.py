#!/usr/bin/env python3
"""
mortality_catalog/cli.py - Command-Line Catalog Browser

Usage:
    mortality-catalog --source ./json list
    mortality-catalog --source ./json search "select ultimate"
    mortality-catalog --source ./json show 3263 --tab rates --matrix
    mortality-catalog --source https://tables.example.org export-csv 3263
    mortality-catalog --source ./json --output ./out bulk csv 1 2 10
    mortality-catalog --source ./json --output ./out bulk json --query "CSO"

Tables are addressed by table identity, identifier or detail path.

License: MIT
"""

import argparse
import logging
import sys
from typing import List, Optional

from .app import CatalogApp, create_app
from .config import load_settings
from .detail_store import DetailState
from .errors import CatalogError
from .export import BulkKind, DirectorySink
from .models import TableSummary
from .presentation import DetailTab, RateView, render_detail
from .provider import create_provider

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def find_summary(app: CatalogApp, ident: str) -> Optional[TableSummary]:
    """Resolve a table by identity, identifier or detail path (first match)."""
    for summary in app.catalog:
        if ident in (summary.table_identity, summary.identifier, summary.detail_path):
            return summary
    return None


def _require(app: CatalogApp, ident: str) -> TableSummary:
    summary = find_summary(app, ident)
    if summary is None:
        raise SystemExit(f"No table matches '{ident}'")
    return summary


def _print_rows(app: CatalogApp, show_all: bool) -> None:
    rows = app.filtered if show_all else app.visible
    for summary in rows:
        print(f"{summary.table_identity:>8}  {summary.name}  [{summary.provider}]")
    remaining = len(app.filtered) - len(rows)
    if remaining > 0:
        print(f"... {remaining} more (use --all)")
    print(f"{len(app.filtered)} tables")


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_list(app: CatalogApp, args: argparse.Namespace) -> int:
    _print_rows(app, args.all)
    return 0


def cmd_search(app: CatalogApp, args: argparse.Namespace) -> int:
    app.set_query(args.query)
    if not app.filtered:
        print(f"No tables match “{args.query}”.")
        return 0
    _print_rows(app, args.all)
    return 0


def cmd_show(app: CatalogApp, args: argparse.Namespace) -> int:
    summary = _require(app, args.table)
    app.open_row(summary)
    if app.detail_state is DetailState.ERROR or app.detail is None:
        print(f"{app.details.error_message}.")
        return 1

    app.select_tab(DetailTab(args.tab))
    for _ in range(args.payload):
        app.page_table(1)
    if args.matrix:
        app.set_rate_view(RateView.MATRIX)

    print(render_detail(summary, app.detail, app.current_view))
    return 0


def cmd_export(app: CatalogApp, args: argparse.Namespace) -> int:
    summary = _require(app, args.table)
    if args.fmt == 'xlsx':
        app.open_row(summary)
        saved = app.export_detail('xlsx')
    else:
        saved = app.export_row(summary, args.fmt)

    for location in saved:
        print(location)
    return 0 if saved else 1


def cmd_bulk(app: CatalogApp, args: argparse.Namespace) -> int:
    if args.query:
        app.set_query(args.query)
        app.toggle_all()
    app.set_query("")
    for ident in args.tables:
        summary = _require(app, ident)
        app.toggle_row(summary.detail_path, shift=False, checked=True)

    if app.selected_count == 0:
        print("Nothing selected.")
        return 1

    location = app.bulk_export(BulkKind(args.kind))
    if location is None:
        print("Bulk export failed; see log.")
        return 1
    print(location)
    return 0


# =============================================================================
# PARSER
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mortality-catalog',
        description='Browse and export converted XTbML mortality tables',
    )
    parser.add_argument('--source', help='Directory of converted JSON files or site URL')
    parser.add_argument('--output', dest='output_dir', help='Export directory')
    parser.add_argument('--config', help='JSON settings file')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING, ERROR')

    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('list', help='List the catalog')
    p.add_argument('--all', action='store_true', help='Print every row, not just the first batch')
    p.set_defaults(func=cmd_list)

    p = sub.add_parser('search', help='Fuzzy search the catalog')
    p.add_argument('query')
    p.add_argument('--all', action='store_true')
    p.set_defaults(func=cmd_search)

    p = sub.add_parser('show', help='Show one table')
    p.add_argument('table')
    p.add_argument('--tab', choices=[t.value for t in DetailTab], default=DetailTab.CLASSIFICATION.value)
    p.add_argument('--table-index', dest='payload', type=int, default=0,
                   help='Rate table (payload) position within the document')
    p.add_argument('--matrix', action='store_true', help='Age x duration matrix for the rates tab')
    p.set_defaults(func=cmd_show)

    for fmt in ('json', 'csv', 'xlsx'):
        p = sub.add_parser(f'export-{fmt}', help=f'Export one table as {fmt.upper()}')
        p.add_argument('table')
        p.set_defaults(func=cmd_export, fmt=fmt)

    p = sub.add_parser('bulk', help='Zip several tables')
    p.add_argument('kind', choices=[k.value for k in BulkKind])
    p.add_argument('tables', nargs='*', help='Tables to include')
    p.add_argument('--query', help='Include every table matching this search')
    p.set_defaults(func=cmd_bulk)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(args.config, source=args.source, output_dir=args.output_dir,
                             log_level=args.log_level)
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    provider = create_provider(settings.source, timeout=settings.request_timeout,
                               max_retries=settings.max_retries)
    try:
        app = create_app(provider, sink=DirectorySink(settings.output_dir), settings=settings)
        return args.func(app, args)
    except (CatalogError, OSError) as e:
        logger.error(f"{e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
