"""
Mortality Table Catalog

Search, inspect and export mortality tables converted from the XTbML
actuarial exchange format.

Components:
- Catalog index builder with numeric-first identity ordering
- Fuzzy search over names, identities, providers, summaries and keywords
- Multi-select with shift-range semantics and select-all-filtered
- Age × duration rate matrices
- JSON, CSV, Excel and zipped bulk exports

License: MIT
"""

__version__ = "1.0.0"

from .errors import (
    CatalogError,
    FetchError,
    ParseError,
)

from .models import (
    ConvertedTable,
    TablePayload,
    RateEntry,
    TableMeta,
    ClassificationPayload,
    TableSummary,
    TableIndexEntry,
    parse_detail,
)

from .catalog import (
    load_table_index,
    compare_identities,
    detail_path_for,
)

from .provider import (
    DataProvider,
    DirectoryProvider,
    HttpProvider,
    create_provider,
)

from .search import SearchIndex, filter_catalog
from .selection import SelectionState, HeaderCheckState
from .viewport import ListViewport, create_viewport
from .detail_store import DetailStore, DetailState
from .matrix import RateMatrix, build_rate_matrix, format_rate

from .export import (
    BulkKind,
    Exporter,
    ExportSink,
    DirectorySink,
    MemorySink,
    build_csv,
    build_workbook,
)

from .presentation import DetailTab, DetailView, RateView
from .config import CatalogSettings, load_settings
from .app import CatalogApp, create_app

__all__ = [
    # Errors
    "CatalogError",
    "FetchError",
    "ParseError",

    # Documents and summaries
    "ConvertedTable",
    "TablePayload",
    "RateEntry",
    "TableMeta",
    "ClassificationPayload",
    "TableSummary",
    "TableIndexEntry",
    "parse_detail",

    # Catalog
    "load_table_index",
    "compare_identities",
    "detail_path_for",

    # Providers
    "DataProvider",
    "DirectoryProvider",
    "HttpProvider",
    "create_provider",

    # Search, selection, list
    "SearchIndex",
    "filter_catalog",
    "SelectionState",
    "HeaderCheckState",
    "ListViewport",
    "create_viewport",

    # Detail and rates
    "DetailStore",
    "DetailState",
    "RateMatrix",
    "build_rate_matrix",
    "format_rate",

    # Export
    "BulkKind",
    "Exporter",
    "ExportSink",
    "DirectorySink",
    "MemorySink",
    "build_csv",
    "build_workbook",

    # Presentation and app
    "DetailTab",
    "DetailView",
    "RateView",
    "CatalogSettings",
    "load_settings",
    "CatalogApp",
    "create_app",
]
