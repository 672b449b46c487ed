"""
tests/test_detail_store.py - Detail Loader Tests

The last opened row always wins: a late result for a row the user already
left must never replace what is on screen.
"""

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor

import pytest

from mortality_catalog.detail_store import DETAIL_ERROR_MESSAGE, DetailState, DetailStore
from mortality_catalog.errors import FetchError
from mortality_catalog.models import ConvertedTable

from conftest import StaticProvider, make_document, summary


class DeferredExecutor(Executor):
    """Runs submitted calls only when the test says so."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run(self, position):
        future, fn, args, kwargs = self.pending[position]
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)


class PausingStore(DetailStore):
    """Holds the first generation check until the test releases it."""

    def __init__(self, provider):
        super().__init__(provider)
        self.checked = threading.Event()
        self.release = threading.Event()

    def is_current(self, request):
        current = super().is_current(request)
        if not self.checked.is_set():
            self.checked.set()
            self.release.wait(timeout=5)
        return current


class GatedProvider(StaticProvider):
    """Blocks reads of one path until its gate opens."""

    def __init__(self, documents, gated):
        super().__init__(documents)
        self.gated = gated
        self.gate = threading.Event()

    def fetch_raw(self, detail_path):
        if detail_path == self.gated:
            self.gate.wait(timeout=5)
        return super().fetch_raw(detail_path)


@pytest.fixture
def provider():
    return StaticProvider([('X', make_document('X')), ('Y', make_document('Y'))],
                          failing={'/detail/BAD.json'})


class TestGenerationGuard:
    """Manual begin/resolve sequencing."""

    def test_late_result_is_dropped(self, provider):
        store = DetailStore(provider)
        x = store.begin(summary('X'))
        y = store.begin(summary('Y'))

        y_doc = ConvertedTable(identifier='Y')
        assert store.resolve(y, y_doc)
        assert not store.resolve(x, ConvertedTable(identifier='X'))

        assert store.selected == summary('Y')
        assert store.detail is y_doc
        assert store.state is DetailState.IDLE

    def test_late_failure_is_dropped(self, provider):
        store = DetailStore(provider)
        x = store.begin(summary('X'))
        store.begin(summary('Y'))

        assert not store.reject(x, FetchError('/detail/X.json', 'HTTP 500'))
        assert store.state is DetailState.LOADING
        assert store.error_message is None

    def test_close_ignores_in_flight(self, provider):
        store = DetailStore(provider)
        request = store.begin(summary('X'))
        store.close()

        assert not store.resolve(request, ConvertedTable(identifier='X'))
        assert store.selected is None
        assert store.detail is None


class TestLoad:
    def test_synchronous_load(self, provider):
        store = DetailStore(provider)
        detail = store.load(summary('X'))
        assert detail.identifier == 'X'
        assert store.state is DetailState.IDLE

    def test_failure_sets_error(self, provider):
        store = DetailStore(provider)
        assert store.load(summary('BAD')) is None
        assert store.state is DetailState.ERROR
        assert store.error_message == DETAIL_ERROR_MESSAGE
        assert store.error.status_code == 500

    def test_reopen_clears_previous_detail(self, provider):
        store = DetailStore(provider)
        store.load(summary('X'))
        store.begin(summary('Y'))
        assert store.detail is None
        assert store.state is DetailState.LOADING


class TestBackgroundLoad:
    """Executor-driven loads settle through the same guard."""

    def test_out_of_order_completion(self, provider):
        executor = DeferredExecutor()
        store = DetailStore(provider)

        store.submit(summary('X'), executor)
        store.submit(summary('Y'), executor)

        executor.run(1)
        assert store.detail.identifier == 'Y'

        executor.run(0)
        assert store.detail.identifier == 'Y'
        assert store.selected.table_identity == 'Y'

    def test_background_failure(self, provider):
        executor = DeferredExecutor()
        store = DetailStore(provider)
        store.submit(summary('BAD'), executor)
        assert store.state is DetailState.LOADING

        executor.run(0)
        assert store.state is DetailState.ERROR

    def test_unexpected_error_is_wrapped(self, provider):
        executor = DeferredExecutor()
        store = DetailStore(provider)
        store.submit(summary('X'), executor)

        future = executor.pending[0][0]
        future.set_exception(RuntimeError('boom'))

        assert store.state is DetailState.ERROR
        assert isinstance(store.error, FetchError)


class TestThreadedSettle:
    """Results settled on worker threads while the user keeps clicking."""

    def test_reopen_while_late_result_applies(self, provider):
        store = PausingStore(provider)
        x = store.begin(summary('X'))

        worker = threading.Thread(target=store.resolve, args=(x, ConvertedTable(identifier='X')))
        worker.start()
        assert store.checked.wait(timeout=5)

        opener = threading.Thread(target=store.begin, args=(summary('Y'),))
        opener.start()
        opener.join(timeout=0.2)
        store.release.set()
        worker.join(timeout=5)
        opener.join(timeout=5)

        assert store.selected == summary('Y')
        assert store.detail is None
        assert store.state is DetailState.LOADING

    def test_thread_pool_last_open_wins(self):
        provider = GatedProvider([('X', make_document('X')), ('Y', make_document('Y'))],
                                 gated='/detail/X.json')
        store = DetailStore(provider)
        executor = ThreadPoolExecutor(max_workers=2)
        try:
            slow = store.submit(summary('X'), executor)
            store.submit(summary('Y'), executor).result(timeout=5)
            provider.gate.set()
            slow.result(timeout=5)
        finally:
            executor.shutdown(wait=True)

        assert store.selected.table_identity == 'Y'
        assert store.detail.identifier == 'Y'
        assert store.state is DetailState.IDLE
