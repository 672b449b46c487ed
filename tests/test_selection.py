"""
tests/test_selection.py - Selection Manager & List Viewport Tests

Selection:
1. Shift-click selects the whole range from the anchor
2. Select-all toggles only the filtered rows
3. Header checkbox tri-state
4. Anchor reset and out-of-filter toggles

Viewport:
5. Batched reveal near the bottom, reset on query change, clamp on shrink
"""

import pytest

from mortality_catalog.selection import HeaderCheckState, SelectionState
from mortality_catalog.viewport import ListViewport, create_viewport

from conftest import summary


@pytest.fixture
def rows():
    return [summary(x) for x in ('A', 'B', 'C', 'D')]


def _paths(state):
    return sorted(p.split('/')[-1][:-5] for p in state.keys)


class TestToggleRow:
    """Single and shift-range toggles."""

    def test_single_toggle_sets_anchor(self, rows):
        state = SelectionState().toggle(rows, '/detail/B.json', shift=False, checked=True)
        assert _paths(state) == ['B']
        assert state.anchor == 1

    def test_shift_range_forward(self, rows):
        state = SelectionState().toggle(rows, '/detail/A.json', shift=False, checked=True)
        state = state.toggle(rows, '/detail/D.json', shift=True, checked=True)
        assert _paths(state) == ['A', 'B', 'C', 'D']
        assert state.anchor == 3

    def test_shift_range_backward_unchecks(self, rows):
        state = SelectionState(keys=frozenset(r.detail_path for r in rows))
        state = state.toggle(rows, '/detail/D.json', shift=False, checked=False)
        state = state.toggle(rows, '/detail/B.json', shift=True, checked=False)
        assert _paths(state) == ['A']

    def test_shift_without_anchor_is_single(self, rows):
        state = SelectionState().toggle(rows, '/detail/C.json', shift=True, checked=True)
        assert _paths(state) == ['C']

    def test_row_outside_filter_is_ignored(self, rows):
        state = SelectionState()
        assert state.toggle(rows, '/detail/Z.json', shift=False, checked=True) is state

    def test_reset_anchor_forces_single_toggle(self, rows):
        state = SelectionState().toggle(rows, '/detail/A.json', shift=False, checked=True)
        state = state.reset_anchor()
        state = state.toggle(rows, '/detail/D.json', shift=True, checked=True)
        assert _paths(state) == ['A', 'D']


class TestSelectAll:
    """Select-all only ever touches filtered rows."""

    def test_toggle_all_round_trip(self, rows):
        outside = summary('Z')
        state = SelectionState(keys=frozenset({outside.detail_path}))
        filtered = rows[:3]

        state = state.toggle_all(filtered)
        assert _paths(state) == ['A', 'B', 'C', 'Z']

        state = state.toggle_all(filtered)
        assert _paths(state) == ['Z']

    def test_partial_selection_selects_rest(self, rows):
        state = SelectionState(keys=frozenset({'/detail/A.json'}))
        assert _paths(state.toggle_all(rows)) == ['A', 'B', 'C', 'D']

    def test_empty_filter_is_noop(self):
        state = SelectionState(keys=frozenset({'/detail/A.json'}))
        assert state.toggle_all([]).keys == state.keys

    def test_clear(self, rows):
        state = SelectionState().toggle_all(rows).clear()
        assert len(state) == 0


class TestHeaderState:
    def test_states(self, rows):
        empty = SelectionState()
        assert empty.header_state(rows) is HeaderCheckState.UNCHECKED
        assert empty.header_state([]) is HeaderCheckState.UNCHECKED

        some = empty.toggle(rows, '/detail/A.json', shift=False, checked=True)
        assert some.header_state(rows) is HeaderCheckState.INDETERMINATE
        assert some.header_state(rows[:1]) is HeaderCheckState.CHECKED
        assert some.header_state(rows[1:]) is HeaderCheckState.UNCHECKED

    def test_selected_summaries_follow_catalog_order(self, rows):
        state = SelectionState(keys=frozenset({'/detail/D.json', '/detail/A.json'}))
        assert [s.table_identity for s in state.selected_summaries(rows)] == ['A', 'D']


class TestViewport:
    """Incremental reveal of the filtered list."""

    def test_initial_batch(self):
        assert create_viewport(100).revealed == 40
        assert create_viewport(7).revealed == 7

    def test_scroll_near_bottom_reveals_batch(self):
        vp = create_viewport(100)
        vp = vp.scrolled(scroll_top=500, client_height=400, scroll_height=940, filtered_len=100)
        assert vp.revealed == 80
        assert vp.scroll_top == 500
        vp = vp.scrolled(scroll_top=900, client_height=400, scroll_height=1300, filtered_len=100)
        assert vp.revealed == 100
        assert not vp.has_more(100)

    def test_scroll_far_from_bottom_keeps_count(self):
        vp = create_viewport(100).scrolled(scroll_top=100, client_height=400,
                                          scroll_height=2000, filtered_len=100)
        assert vp.revealed == 40
        assert vp.has_more(100)

    def test_reset_scrolls_to_top(self):
        vp = ListViewport(revealed=120, scroll_top=900)
        vp = vp.reset(filtered_len=25)
        assert vp.revealed == 25
        assert vp.scroll_top == 0

    def test_clamp_keeps_scroll(self):
        vp = ListViewport(revealed=80, scroll_top=300).clamp(50)
        assert vp.revealed == 50
        assert vp.scroll_top == 300
        assert ListViewport(revealed=10).clamp(50).revealed == 10

    def test_visible_prefix(self):
        rows = list(range(100))
        assert create_viewport(100, batch=5).visible(rows) == [0, 1, 2, 3, 4]

    def test_batch_must_be_positive(self):
        with pytest.raises(ValueError):
            create_viewport(10, batch=0)
