"""
mortality_catalog/detail_store.py - On-Demand Detail Loader

Loads the full document for the row the user opened. Details are never
cached: closing the modal or opening another row drops the current one.

LAST SELECTION WINS:
Each begin() bumps a generation counter and hands out a DetailRequest
ticket. A result is applied only when its ticket still carries the current
generation; results for superseded selections are dropped without touching
state. The underlying transfer is never cancelled, only ignored.

Completion callbacks run on executor threads, so the generation check and
the state writes happen under one lock.

License: MIT
"""

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import CatalogError, FetchError
from .models import ConvertedTable, TableSummary
from .provider import DataProvider

logger = logging.getLogger(__name__)


DETAIL_ERROR_MESSAGE = "Unable to load detail"


class DetailState(Enum):
    """Load state shown in the modal."""
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


@dataclass(frozen=True)
class DetailRequest:
    """Ticket captured when a load starts."""
    generation: int
    summary: TableSummary


class DetailStore:
    """
    Single-flight detail loader with a last-request-wins guard.

    Attributes:
        selected: Summary of the open row (None when closed)
        detail: Loaded document for the open row
        state: IDLE / LOADING / ERROR
        error: Last failure for the open row
    """

    def __init__(self, provider: DataProvider):
        self.provider = provider
        self.selected: Optional[TableSummary] = None
        self.detail: Optional[ConvertedTable] = None
        self.state = DetailState.IDLE
        self.error: Optional[CatalogError] = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def error_message(self) -> Optional[str]:
        return DETAIL_ERROR_MESSAGE if self.state is DetailState.ERROR else None

    def is_current(self, request: DetailRequest) -> bool:
        return request.generation == self._generation

    def begin(self, summary: TableSummary) -> DetailRequest:
        """Open a row; supersedes any in-flight request."""
        with self._lock:
            self._generation += 1
            self.selected = summary
            self.detail = None
            self.error = None
            self.state = DetailState.LOADING
            return DetailRequest(self._generation, summary)

    def resolve(self, request: DetailRequest, detail: ConvertedTable) -> bool:
        """Apply a loaded document. Returns False when superseded."""
        with self._lock:
            if not self.is_current(request):
                logger.debug(f"Dropped superseded detail: {request.summary.detail_path}")
                return False
            self.detail = detail
            self.state = DetailState.IDLE
            return True

    def reject(self, request: DetailRequest, error: CatalogError) -> bool:
        """Apply a failure. Returns False when superseded."""
        with self._lock:
            if not self.is_current(request):
                logger.debug(f"Dropped superseded failure: {request.summary.detail_path}")
                return False
            self.detail = None
            self.error = error
            self.state = DetailState.ERROR
        logger.warning(f"Detail load failed: {error}")
        return True

    def close(self) -> None:
        """Close the modal; any in-flight result is ignored."""
        with self._lock:
            self._generation += 1
            self.selected = None
            self.detail = None
            self.error = None
            self.state = DetailState.IDLE

    # -------------------------------------------------------------------------
    # Fetch drivers
    # -------------------------------------------------------------------------

    def fetch(self, request: DetailRequest) -> bool:
        """Fetch for a ticket on the calling thread and apply the outcome."""
        try:
            detail = self.provider.fetch_detail(request.summary.detail_path)
        except CatalogError as e:
            return self.reject(request, e)
        return self.resolve(request, detail)

    def load(self, summary: TableSummary) -> Optional[ConvertedTable]:
        """Open a row and load it synchronously."""
        request = self.begin(summary)
        self.fetch(request)
        return self.detail

    def submit(self, summary: TableSummary, executor: Executor) -> 'Future[ConvertedTable]':
        """
        Open a row and fetch in the background.

        The completion callback goes through the same generation guard, so a
        late result for an earlier row never replaces the current one.
        """
        request = self.begin(summary)
        future = executor.submit(self.provider.fetch_detail, summary.detail_path)

        def _settle(done: 'Future[ConvertedTable]') -> None:
            error = done.exception()
            if error is None:
                self.resolve(request, done.result())
            elif isinstance(error, CatalogError):
                self.reject(request, error)
            else:
                self.reject(request, FetchError(summary.detail_path, f"unexpected failure: {error!r}"))

        future.add_done_callback(_settle)
        return future
