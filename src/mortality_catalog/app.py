"""
mortality_catalog/app.py - Catalog Application State & Event Dispatcher

Canonical state:
- catalog (ordered summaries) and its search index
- query
- selection (keys + anchor)
- list viewport (revealed rows, scroll offset)
- detail store (open row, loaded document, load state)
- detail view (tab, payload, list/matrix)
- exporter busy markers

Derived state (filtered list, visible rows, counts, header checkbox, rate
matrix) is recomputed from canonical state on every access instead of
being cached, so it can never go stale.

Every user or network event is a small event object handed to
CatalogApp.dispatch(), which routes it to one handler.

License: MIT
"""

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .config import CatalogSettings
from .detail_store import DetailState, DetailStore
from .export import BulkKind, Exporter, ExportSink, MemorySink
from .matrix import RateMatrix, build_rate_matrix
from .models import ConvertedTable, TablePayload, TableSummary
from .presentation import DetailTab, DetailView, RateView
from .provider import DataProvider
from .search import SearchIndex
from .selection import HeaderCheckState, SelectionState
from .viewport import ListViewport, create_viewport

logger = logging.getLogger(__name__)


# =============================================================================
# EVENTS
# =============================================================================

@dataclass(frozen=True)
class QueryChanged:
    query: str


@dataclass(frozen=True)
class ListScrolled:
    scroll_top: float
    client_height: float
    scroll_height: float


@dataclass(frozen=True)
class RowToggled:
    detail_path: str
    shift: bool
    checked: bool


@dataclass(frozen=True)
class AllToggled:
    pass


@dataclass(frozen=True)
class SelectionCleared:
    pass


@dataclass(frozen=True)
class RowOpened:
    summary: TableSummary


@dataclass(frozen=True)
class ModalClosed:
    pass


@dataclass(frozen=True)
class TabSelected:
    tab: DetailTab


@dataclass(frozen=True)
class TablePaged:
    step: int


@dataclass(frozen=True)
class RateViewSelected:
    view: RateView


@dataclass(frozen=True)
class RowExportRequested:
    summary: TableSummary
    fmt: str


@dataclass(frozen=True)
class DetailExportRequested:
    fmt: str


@dataclass(frozen=True)
class BulkExportRequested:
    kind: BulkKind


# =============================================================================
# APPLICATION
# =============================================================================

class CatalogApp:
    """
    Presentation core of the catalog browser.

    Attributes:
        provider: Source of summaries and documents
        settings: Runtime configuration
        executor: Optional background executor for detail loads
    """

    def __init__(self, provider: DataProvider,
                 sink: Optional[ExportSink] = None,
                 settings: Optional[CatalogSettings] = None,
                 executor: Optional[Executor] = None):
        self.provider = provider
        self.settings = settings or CatalogSettings()
        self.executor = executor

        self.catalog: List[TableSummary] = []
        self.index = SearchIndex([], threshold=self.settings.search_threshold)
        self.query = ""
        self.selection = SelectionState()
        self.viewport = create_viewport(0, self.settings.load_batch, self.settings.scroll_threshold_px)
        self.details = DetailStore(provider)
        self.view = DetailView()
        self.exporter = Exporter(provider, sink or MemorySink())

        self._handlers: Dict[type, Callable[[Any], Any]] = {
            QueryChanged: lambda e: self.set_query(e.query),
            ListScrolled: lambda e: self.scroll(e.scroll_top, e.client_height, e.scroll_height),
            RowToggled: lambda e: self.toggle_row(e.detail_path, e.shift, e.checked),
            AllToggled: lambda e: self.toggle_all(),
            SelectionCleared: lambda e: self.clear_selection(),
            RowOpened: lambda e: self.open_row(e.summary),
            ModalClosed: lambda e: self.close_modal(),
            TabSelected: lambda e: self.select_tab(e.tab),
            TablePaged: lambda e: self.page_table(e.step),
            RateViewSelected: lambda e: self.set_rate_view(e.view),
            RowExportRequested: lambda e: self.export_row(e.summary, e.fmt),
            DetailExportRequested: lambda e: self.export_detail(e.fmt),
            BulkExportRequested: lambda e: self.bulk_export(e.kind),
        }

    def dispatch(self, event: Any) -> Any:
        """Route one event to its handler."""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unknown event: {event!r}")
        return handler(event)

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    @property
    def filtered(self) -> List[TableSummary]:
        return self.index.filter(self.query)

    @property
    def visible(self) -> List[TableSummary]:
        return self.viewport.visible(self.filtered)

    @property
    def has_more(self) -> bool:
        return self.viewport.has_more(len(self.filtered))

    @property
    def selected_count(self) -> int:
        return len(self.selection)

    @property
    def filtered_selected_count(self) -> int:
        return self.selection.count_in(self.filtered)

    @property
    def visible_selected_count(self) -> int:
        return self.selection.count_in(self.visible)

    @property
    def header_state(self) -> HeaderCheckState:
        return self.selection.header_state(self.filtered)

    @property
    def selected_summaries(self) -> List[TableSummary]:
        return self.selection.selected_summaries(self.catalog)

    @property
    def modal_open(self) -> bool:
        """Presentation-mode flag: the detail modal is showing."""
        return self.details.selected is not None

    @property
    def detail(self) -> Optional[ConvertedTable]:
        return self.details.detail

    @property
    def detail_state(self) -> DetailState:
        return self.details.state

    @property
    def current_view(self) -> DetailView:
        return self.view.normalized(self.detail)

    @property
    def active_table(self) -> Optional[TablePayload]:
        if self.detail is None:
            return None
        return self.detail.get_table(self.view.table_index)

    @property
    def can_use_matrix(self) -> bool:
        return self.view.can_use_matrix(self.detail)

    @property
    def rate_matrix(self) -> Optional[RateMatrix]:
        return build_rate_matrix(self.active_table)

    @property
    def bulk_enabled(self) -> bool:
        return self.selected_count > 0 and self.exporter.bulk_loading is None

    # -------------------------------------------------------------------------
    # Catalog and list handlers
    # -------------------------------------------------------------------------

    def load_catalog(self) -> List[TableSummary]:
        """(Re)load the catalog and rebuild the search index."""
        self.catalog = list(self.provider.list_catalog())
        self.index = SearchIndex(self.catalog, threshold=self.settings.search_threshold)
        self.viewport = self.viewport.reset(len(self.filtered))
        self.selection = self.selection.reset_anchor()
        logger.info(f"Catalog ready: {len(self.catalog)} tables from {self.provider.describe()}")
        return self.catalog

    def set_query(self, query: str) -> List[TableSummary]:
        """New query: back to one batch at the top, range anchor dropped."""
        self.query = query
        filtered = self.filtered
        self.viewport = self.viewport.reset(len(filtered))
        self.selection = self.selection.reset_anchor()
        return filtered

    def scroll(self, scroll_top: float, client_height: float, scroll_height: float) -> ListViewport:
        self.viewport = self.viewport.scrolled(scroll_top, client_height, scroll_height,
                                               len(self.filtered))
        return self.viewport

    # -------------------------------------------------------------------------
    # Selection handlers
    # -------------------------------------------------------------------------

    def toggle_row(self, detail_path: str, shift: bool, checked: bool) -> SelectionState:
        self.selection = self.selection.toggle(self.filtered, detail_path, shift, checked)
        return self.selection

    def toggle_all(self) -> SelectionState:
        self.selection = self.selection.toggle_all(self.filtered)
        return self.selection

    def clear_selection(self) -> SelectionState:
        self.selection = self.selection.clear()
        return self.selection

    # -------------------------------------------------------------------------
    # Detail handlers
    # -------------------------------------------------------------------------

    def open_row(self, summary: TableSummary) -> Optional[ConvertedTable]:
        """
        Open the modal for a row.

        With an executor the load runs in the background and the current
        detail is None until it settles; otherwise it loads synchronously.
        """
        self.view = DetailView()
        if self.executor is not None:
            self.details.submit(summary, self.executor)
            return None
        return self.details.load(summary)

    def close_modal(self) -> None:
        self.details.close()
        self.view = DetailView()

    def select_tab(self, tab: DetailTab) -> DetailView:
        self.view = self.view.select_tab(tab)
        return self.view

    def page_table(self, step: int) -> DetailView:
        if step > 0:
            self.view = self.view.next_table(self.detail)
        elif step < 0:
            self.view = self.view.prev_table(self.detail)
        return self.view

    def set_rate_view(self, view: RateView) -> DetailView:
        self.view = self.view.set_rate_view(view, self.detail)
        return self.view

    # -------------------------------------------------------------------------
    # Export handlers
    # -------------------------------------------------------------------------

    def export_row(self, summary: TableSummary, fmt: str) -> List[str]:
        """Per-row JSON/CSV buttons."""
        if fmt == 'json':
            return [self.exporter.export_json(summary.detail_path, summary.identifier)]
        if fmt == 'csv':
            return self.exporter.export_summary_csv(summary)
        raise ValueError(f"Unsupported export format: {fmt}")

    def export_detail(self, fmt: str) -> List[str]:
        """Modal footer buttons; no-op until a document is loaded."""
        selected, detail = self.details.selected, self.detail
        if selected is None or detail is None:
            return []
        if fmt == 'json':
            return [self.exporter.export_json(selected.detail_path, detail.identifier)]
        if fmt == 'csv':
            return self.exporter.export_detail_csv(detail, self.view.table_index)
        if fmt == 'xlsx':
            return [self.exporter.export_workbook(detail)]
        raise ValueError(f"Unsupported export format: {fmt}")

    def bulk_export(self, kind: BulkKind) -> Optional[str]:
        if not self.bulk_enabled:
            return None
        return self.exporter.bulk_export(kind, self.selected_summaries)


def create_app(provider: DataProvider, sink: Optional[ExportSink] = None,
               settings: Optional[CatalogSettings] = None,
               executor: Optional[Executor] = None) -> CatalogApp:
    """Factory: build the app and load the catalog."""
    app = CatalogApp(provider, sink=sink, settings=settings, executor=executor)
    app.load_catalog()
    return app
